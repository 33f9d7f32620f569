import itertools
import os

# Must be set before the application modules read their settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import fakeredis
import pytest
from fastapi.testclient import TestClient

from clinic.main import app
from clinic.core.database import Base, SessionLocal, engine, get_redis, init_db
from clinic.core.security import TokenAuthority, UserRole, get_password_hash
from clinic.models.admin import Admin
from clinic.models.appointment import Appointment, AppointmentStatus
from clinic.models.doctor import Doctor
from clinic.models.patient import Patient

DOCTOR_PASSWORD = "doctorpass"
PATIENT_PASSWORD = "patientpass"
ADMIN_PASSWORD = "adminpass"

@pytest.fixture(scope="session")
def password_hashes():
    # bcrypt is slow; hash each fixture password once per run
    return {
        "doctor": get_password_hash(DOCTOR_PASSWORD),
        "patient": get_password_hash(PATIENT_PASSWORD),
        "admin": get_password_hash(ADMIN_PASSWORD),
    }

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def fake_redis():
    server = fakeredis.FakeRedis(decode_responses=True)
    app.dependency_overrides[get_redis] = lambda: server
    yield server
    app.dependency_overrides.pop(get_redis, None)

@pytest.fixture
def client(test_db, fake_redis):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def authority():
    return TokenAuthority()

@pytest.fixture
def auth_headers(authority):
    """Build an Authorization header for a subject and role."""
    def _headers(subject, role):
        return {"Authorization": f"Bearer {authority.issue(subject, role)}"}
    return _headers

@pytest.fixture
def make_doctor(db, password_hashes):
    counter = itertools.count(1)

    def _make(
        name="Dr. Alice Smith",
        specialty="Cardiology",
        available_times=("09:00", "09:30", "10:00"),
        email=None
    ):
        n = next(counter)
        doctor = Doctor(
            name=name,
            specialty=specialty,
            email=email or f"doctor{n}@example.com",
            phone=f"555-010{n}",
            password_hash=password_hashes["doctor"],
            available_times=list(available_times),
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make

@pytest.fixture
def make_patient(db, password_hashes):
    counter = itertools.count(1)

    def _make(name="Pat Jones", email=None, phone=None):
        n = next(counter)
        patient = Patient(
            name=name,
            email=email or f"patient{n}@example.com",
            phone=phone or f"555-020{n}",
            password_hash=password_hashes["patient"],
        )
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient

    return _make

@pytest.fixture
def make_appointment(db):
    def _make(doctor, patient, appointment_time, status=AppointmentStatus.SCHEDULED):
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            appointment_time=appointment_time,
            status=status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make

@pytest.fixture
def admin(db, password_hashes):
    account = Admin(username="root", password_hash=password_hashes["admin"])
    db.add(account)
    db.commit()
    db.refresh(account)
    return account

@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin.username, UserRole.ADMIN)
