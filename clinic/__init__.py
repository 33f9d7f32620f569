"""
Clinic Appointment Platform

A FastAPI-based system connecting admins, doctors and patients through
token-gated doctor management, appointment scheduling and prescriptions.
"""

__version__ = "1.0.0"
