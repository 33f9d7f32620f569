"""
Slot availability for a doctor on a given day.

A doctor's bookable slot-starts come from an availability template: a
date-specific override if one exists, else a weekday override, else the
doctor's default ``available_times``. Starts already taken by a live
(non-cancelled) appointment are removed.
"""
from datetime import date, datetime, time, timedelta
import logging
from typing import Iterable, List, Optional, Set, Union

from sqlalchemy.orm import Session

from ..core.exceptions import NotFound, ValidationError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor import AvailabilityTemplate, Doctor

logger = logging.getLogger(__name__)

SLOT_FORMAT = "%H:%M"


def parse_date(value: Union[str, date, datetime]) -> date:
    """Parse a YYYY-MM-DD string (dates and datetimes pass through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def parse_slot_start(entry: Union[str, time]) -> time:
    """Return the start of a template entry such as "09:00" or "09:00-10:00"."""
    if isinstance(entry, time):
        return entry.replace(second=0, microsecond=0)
    start = str(entry).split("-", 1)[0].strip()
    try:
        return datetime.strptime(start, SLOT_FORMAT).time()
    except ValueError:
        raise ValidationError(f"Invalid slot time {entry!r}, expected HH:MM")


def normalize_slots(entries: Iterable[Union[str, time]]) -> List[time]:
    """Slot-starts in ascending order, duplicates collapsed."""
    return sorted({parse_slot_start(entry) for entry in entries or []})


def format_slot(slot: time) -> str:
    return slot.strftime(SLOT_FORMAT)


class SlotAvailabilityResolver:
    def __init__(self, db: Session):
        self.db = db

    def template_for(self, doctor: Doctor, day: date) -> List[time]:
        """Declared slot-starts for the doctor on this day, before bookings."""
        override = (
            self.db.query(AvailabilityTemplate)
            .filter(
                AvailabilityTemplate.doctor_id == doctor.id,
                AvailabilityTemplate.on_date == day,
            )
            .first()
        )
        if override is None:
            override = (
                self.db.query(AvailabilityTemplate)
                .filter(
                    AvailabilityTemplate.doctor_id == doctor.id,
                    AvailabilityTemplate.weekday == day.weekday(),
                )
                .first()
            )

        entries = override.slot_times if override is not None else doctor.available_times
        return normalize_slots(entries)

    def booked_starts(
        self,
        doctor_id: int,
        day: date,
        exclude_appointment_id: Optional[int] = None
    ) -> Set[time]:
        """Times-of-day held by non-cancelled appointments on this day."""
        day_start = datetime.combine(day, time.min)
        query = self.db.query(Appointment.appointment_time).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.appointment_time >= day_start,
            Appointment.appointment_time < day_start + timedelta(days=1),
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return {booked.time() for (booked,) in query.all()}

    def available_slots(
        self,
        doctor_id: int,
        day: Union[str, date],
        exclude_appointment_id: Optional[int] = None
    ) -> List[datetime]:
        """Open slot-starts for the doctor on day, ascending by time-of-day.

        Raises ``ValidationError`` for an unparseable day and ``NotFound``
        when the doctor does not exist. ``exclude_appointment_id`` treats
        that appointment's own booking as free, for rescheduling.
        """
        day = parse_date(day)
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise NotFound(f"Doctor {doctor_id} not found")

        booked = self.booked_starts(doctor_id, day, exclude_appointment_id)
        slots = [
            datetime.combine(day, slot)
            for slot in self.template_for(doctor, day)
            if slot not in booked
        ]
        logger.debug(f"Doctor {doctor_id} on {day}: {len(slots)} open, {len(booked)} booked")
        return slots
