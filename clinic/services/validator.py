from datetime import datetime
from enum import IntEnum
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from ..models.doctor import Doctor
from .availability import SlotAvailabilityResolver


class AppointmentCheck(IntEnum):
    DOCTOR_NOT_FOUND = -1
    SLOT_UNAVAILABLE = 0
    VALID = 1


class SlotRequest(NamedTuple):
    doctor_id: int
    appointment_time: datetime


class AppointmentValidator:
    """Decides whether a requested doctor/time pair is bookable right now.

    This is a read-only check, not a reservation. Callers that act on a
    VALID answer must re-run it inside their booking transaction.
    """

    def __init__(self, db: Session, resolver: Optional[SlotAvailabilityResolver] = None):
        self.db = db
        self.resolver = resolver or SlotAvailabilityResolver(db)

    def validate(self, appointment, exclude_appointment_id: Optional[int] = None) -> AppointmentCheck:
        """Check anything carrying ``doctor_id`` and ``appointment_time``."""
        if self.db.get(Doctor, appointment.doctor_id) is None:
            return AppointmentCheck.DOCTOR_NOT_FOUND

        requested = appointment.appointment_time
        slots = self.resolver.available_slots(
            appointment.doctor_id,
            requested.date(),
            exclude_appointment_id=exclude_appointment_id,
        )
        if any(slot.time() == requested.time() for slot in slots):
            return AppointmentCheck.VALID
        return AppointmentCheck.SLOT_UNAVAILABLE
