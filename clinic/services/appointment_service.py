from datetime import date, datetime, time, timedelta
import logging
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import NotFound, SlotUnavailable
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor import Doctor
from ..models.patient import Patient
from .availability import parse_date
from .lifecycle import AppointmentLifecycle
from .locking import DoctorLockRegistry, doctor_locks
from .validator import AppointmentCheck, AppointmentValidator, SlotRequest

logger = logging.getLogger(__name__)

class AppointmentService:
    def __init__(
        self,
        db: Session,
        validator: Optional[AppointmentValidator] = None,
        lifecycle: Optional[AppointmentLifecycle] = None,
        locks: Optional[DoctorLockRegistry] = None
    ):
        self.db = db
        self.validator = validator or AppointmentValidator(db)
        self.lifecycle = lifecycle or AppointmentLifecycle(db)
        self.locks = locks or doctor_locks

    def check(self, doctor_id: int, appointment_time: datetime) -> AppointmentCheck:
        """Advisory availability check; reserves nothing."""
        return self.validator.validate(SlotRequest(doctor_id, appointment_time))

    def book(self, patient: Patient, doctor_id: int, appointment_time: datetime) -> Appointment:
        """Reserve a slot for the patient or fail.

        Validation and insert happen under the doctor's lock and inside one
        transaction; the partial unique index on live bookings catches any
        writer outside this process.
        """
        appointment_time = _strip_tz(appointment_time)

        with self.locks.hold(doctor_id):
            try:
                self._lock_doctor_row(doctor_id)
                self._ensure_bookable(SlotRequest(doctor_id, appointment_time))

                appointment = Appointment(
                    doctor_id=doctor_id,
                    patient_id=patient.id,
                    appointment_time=appointment_time,
                    status=AppointmentStatus.SCHEDULED,
                )
                self.db.add(appointment)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.info(f"Booking lost race for doctor {doctor_id} at {appointment_time}")
                raise SlotUnavailable()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(appointment)
        logger.info(
            f"Booked appointment {appointment.id}: patient {patient.id} "
            f"with doctor {doctor_id} at {appointment_time}"
        )
        return appointment

    def reschedule(
        self,
        patient: Patient,
        appointment_id: int,
        appointment_time: datetime,
        doctor_id: Optional[int] = None
    ) -> Appointment:
        """Move a scheduled appointment to a new slot, optionally with another doctor."""
        appointment_time = _strip_tz(appointment_time)
        appointment = self._owned_by_patient(patient, appointment_id)
        self.lifecycle.ensure_reschedulable(appointment)
        current_doctor_id = appointment.doctor_id
        target_doctor_id = doctor_id if doctor_id is not None else current_doctor_id

        with self.locks.hold(current_doctor_id, target_doctor_id):
            try:
                self._lock_doctor_row(target_doctor_id)
                appointment = self.lifecycle.load(appointment_id, for_update=True)
                self.lifecycle.ensure_reschedulable(appointment)
                self._ensure_bookable(
                    SlotRequest(target_doctor_id, appointment_time),
                    exclude_appointment_id=appointment.id,
                )

                appointment.doctor_id = target_doctor_id
                appointment.appointment_time = appointment_time
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise SlotUnavailable()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(appointment)
        logger.info(f"Rescheduled appointment {appointment.id} to {appointment_time} with doctor {target_doctor_id}")
        return appointment

    def cancel(self, patient: Patient, appointment_id: int) -> Appointment:
        """Cancel one of the patient's appointments, freeing its slot."""
        try:
            appointment = self._owned_by_patient(patient, appointment_id, for_update=True)
            self.lifecycle.cancel(appointment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        return appointment

    def complete(self, doctor: Doctor, appointment_id: int) -> Appointment:
        """Close an appointment whose prescription has been issued."""
        try:
            appointment = self.lifecycle.load(appointment_id, for_update=True)
            if appointment.doctor_id != doctor.id:
                raise NotFound(f"Appointment {appointment_id} not found")
            self.lifecycle.complete(appointment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        return appointment

    def for_doctor_on(
        self,
        doctor: Doctor,
        day: Union[str, date],
        patient_name: Optional[str] = None
    ) -> List[Appointment]:
        """A doctor's appointments on one day, optionally narrowed by patient name."""
        day_start = datetime.combine(parse_date(day), time.min)
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor.id,
            Appointment.appointment_time >= day_start,
            Appointment.appointment_time < day_start + timedelta(days=1),
        )
        if patient_name:
            query = query.join(Patient, Appointment.patient_id == Patient.id).filter(
                Patient.name.icontains(patient_name, autoescape=True)
            )
        return query.order_by(Appointment.appointment_time, Appointment.id).all()

    def _ensure_bookable(self, request: SlotRequest, exclude_appointment_id: Optional[int] = None):
        result = self.validator.validate(request, exclude_appointment_id=exclude_appointment_id)
        if result is AppointmentCheck.DOCTOR_NOT_FOUND:
            raise NotFound(f"Doctor {request.doctor_id} not found")
        if result is AppointmentCheck.SLOT_UNAVAILABLE:
            raise SlotUnavailable()

    def _lock_doctor_row(self, doctor_id: int) -> None:
        # Serializes bookers across processes on backends with row locks
        self.db.query(Doctor.id).filter(Doctor.id == doctor_id).with_for_update().first()

    def _owned_by_patient(self, patient: Patient, appointment_id: int, for_update: bool = False) -> Appointment:
        appointment = self.lifecycle.load(appointment_id, for_update=for_update)
        if appointment.patient_id != patient.id:
            # Other patients' appointments are indistinguishable from missing ones
            raise NotFound(f"Appointment {appointment_id} not found")
        return appointment

def _strip_tz(value: datetime) -> datetime:
    """Appointment times are stored naive, in clinic-local time."""
    if value.tzinfo is not None:
        value = value.replace(tzinfo=None)
    return value
