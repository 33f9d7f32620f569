from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import Conflict, NotFound, ValidationError
from ..core.security import get_password_hash
from ..models.doctor import AvailabilityTemplate, Doctor
from ..schemas.doctor import AvailabilityTemplateIn, DoctorCreate, DoctorUpdate
from .availability import format_slot, normalize_slots
from .locking import DoctorLockRegistry, doctor_locks

logger = logging.getLogger(__name__)

# Fields an update may change but never set to null
REQUIRED_FIELDS = ("name", "specialty", "email", "password", "available_times")

class DoctorService:
    def __init__(self, db: Session, locks: Optional[DoctorLockRegistry] = None):
        self.db = db
        self.locks = locks or doctor_locks

    def list_doctors(self) -> List[Doctor]:
        """All doctors in store order."""
        return self.db.query(Doctor).order_by(Doctor.id).all()

    def get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise NotFound(f"Doctor {doctor_id} not found")
        return doctor

    def get_by_email(self, email: str) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.email == email).first()

    def create_doctor(self, doctor_data: DoctorCreate) -> Doctor:
        """Add a doctor; the email must not already be registered."""
        if self.get_by_email(doctor_data.email):
            raise Conflict("Doctor already exists")

        doctor = Doctor(
            name=doctor_data.name,
            specialty=doctor_data.specialty,
            email=doctor_data.email,
            phone=doctor_data.phone,
            password_hash=get_password_hash(doctor_data.password),
            available_times=_canonical_slots(doctor_data.available_times),
        )
        self.db.add(doctor)
        self._commit("Doctor already exists")
        self.db.refresh(doctor)

        logger.info(f"Created doctor {doctor.id} ({doctor.specialty})")
        return doctor

    def update_doctor(self, doctor_id: int, doctor_data: DoctorUpdate) -> Doctor:
        doctor = self.get_doctor(doctor_id)
        changes = doctor_data.model_dump(exclude_unset=True)

        cleared = sorted(field for field in REQUIRED_FIELDS if field in changes and changes[field] is None)
        if cleared:
            raise ValidationError(f"Cannot clear required field(s): {', '.join(cleared)}")

        if "email" in changes and changes["email"] != doctor.email:
            if self.get_by_email(changes["email"]):
                raise Conflict("Another doctor already uses this email")
        if "password" in changes:
            doctor.password_hash = get_password_hash(changes.pop("password"))
        if "available_times" in changes:
            changes["available_times"] = _canonical_slots(changes["available_times"])

        for field, value in changes.items():
            setattr(doctor, field, value)

        self._commit("Another doctor already uses this email")
        self.db.refresh(doctor)
        return doctor

    def delete_doctor(self, doctor_id: int) -> None:
        """Remove a doctor together with their appointments and templates."""
        doctor = self.get_doctor(doctor_id)
        with self.locks.hold(doctor_id):
            self.db.delete(doctor)
            self.db.commit()
        self.locks.forget(doctor_id)
        logger.info(f"Deleted doctor {doctor_id}")

    def set_template(self, doctor_id: int, template_data: AvailabilityTemplateIn) -> AvailabilityTemplate:
        """Create or replace the weekday or date override for a doctor."""
        self.get_doctor(doctor_id)

        query = self.db.query(AvailabilityTemplate).filter(AvailabilityTemplate.doctor_id == doctor_id)
        if template_data.on_date is not None:
            query = query.filter(AvailabilityTemplate.on_date == template_data.on_date)
        else:
            query = query.filter(AvailabilityTemplate.weekday == template_data.weekday)

        template = query.first()
        if template is None:
            template = AvailabilityTemplate(
                doctor_id=doctor_id,
                weekday=template_data.weekday if template_data.on_date is None else None,
                on_date=template_data.on_date,
            )
            self.db.add(template)
        template.slot_times = _canonical_slots(template_data.slot_times)

        self._commit("Template already exists")
        self.db.refresh(template)
        return template

    def remove_template(self, doctor_id: int, weekday: Optional[int] = None, on_date: Optional[date] = None) -> None:
        query = self.db.query(AvailabilityTemplate).filter(AvailabilityTemplate.doctor_id == doctor_id)
        if on_date is not None:
            query = query.filter(AvailabilityTemplate.on_date == on_date)
        else:
            query = query.filter(AvailabilityTemplate.weekday == weekday)

        template = query.first()
        if template is None:
            raise NotFound("Availability template not found")
        self.db.delete(template)
        self.db.commit()

    def _commit(self, conflict_message: str) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict(conflict_message)

def _canonical_slots(entries: List[str]) -> List[str]:
    """Validate template entries and store them as sorted "HH:MM" starts."""
    return [format_slot(slot) for slot in normalize_slots(entries)]
