"""
Test suite for the Clinic Appointment Platform.

Contains unit tests for the scheduling core and API-level tests.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
