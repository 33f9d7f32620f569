import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import ValidationError
from ..core.security import get_password_hash
from ..models.patient import Patient
from ..schemas.patient import PatientRegister

logger = logging.getLogger(__name__)

class PatientService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[Patient]:
        return self.db.query(Patient).filter(Patient.email == email).first()

    def is_new_patient(self, email: str, phone: str) -> bool:
        """True when neither the email nor the phone is already registered."""
        existing = self.db.query(Patient).filter(
            or_(Patient.email == email, Patient.phone == phone)
        ).first()
        return existing is None

    def register_patient(self, patient_data: PatientRegister) -> Patient:
        if not self.is_new_patient(patient_data.email, patient_data.phone):
            raise ValidationError("Patient with this email or phone already exists")

        patient = Patient(
            name=patient_data.name,
            email=patient_data.email,
            phone=patient_data.phone,
            address=patient_data.address,
            password_hash=get_password_hash(patient_data.password),
        )
        self.db.add(patient)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            self.db.rollback()
            raise ValidationError("Patient with this email or phone already exists")

        self.db.refresh(patient)
        logger.info(f"Registered patient {patient.id}")
        return patient
