import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import Conflict, NotFound
from ..models.doctor import Doctor
from ..models.prescription import Prescription
from ..schemas.prescription import PrescriptionCreate
from .lifecycle import AppointmentLifecycle

logger = logging.getLogger(__name__)

class PrescriptionService:
    def __init__(self, db: Session, lifecycle: Optional[AppointmentLifecycle] = None):
        self.db = db
        self.lifecycle = lifecycle or AppointmentLifecycle(db)

    def save_prescription(self, doctor: Doctor, prescription_data: PrescriptionCreate) -> Prescription:
        """Store a prescription and mark its appointment as prescribed, atomically."""
        try:
            appointment = self.lifecycle.load(prescription_data.appointment_id, for_update=True)
            if appointment.doctor_id != doctor.id:
                raise NotFound(f"Appointment {appointment.id} not found")

            self.lifecycle.issue_prescription(appointment)
            prescription = Prescription(
                appointment_id=appointment.id,
                patient_name=prescription_data.patient_name,
                medication=prescription_data.medication,
                dosage=prescription_data.dosage,
                doctor_notes=prescription_data.doctor_notes,
            )
            self.db.add(prescription)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("A prescription already exists for this appointment")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(prescription)
        logger.info(f"Prescription {prescription.id} issued for appointment {appointment.id}")
        return prescription

    def get_for_appointment(self, doctor: Doctor, appointment_id: int) -> Prescription:
        prescription = (
            self.db.query(Prescription)
            .filter(Prescription.appointment_id == appointment_id)
            .first()
        )
        if prescription is None or prescription.appointment.doctor_id != doctor.id:
            raise NotFound(f"No prescription found for appointment {appointment_id}")
        return prescription
