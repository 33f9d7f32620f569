"""
Doctor search and patient appointment-history search.

Each combination of supplied predicates maps to its own query method so
that the semantics of every combination can be read off directly.
"""
from datetime import datetime, time
import logging
from typing import Callable, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from ..core.exceptions import ValidationError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor import Doctor
from .availability import normalize_slots, parse_slot_start

logger = logging.getLogger(__name__)

PERIODS = {
    "AM": lambda slot: slot.hour < 12,
    "PM": lambda slot: slot.hour >= 12,
}

# (name, specialty, time) presence -> query method
DOCTOR_QUERIES = {
    (False, False, False): "all_doctors",
    (True, False, False): "doctors_by_name",
    (False, True, False): "doctors_by_specialty",
    (False, False, True): "doctors_by_time",
    (True, True, False): "doctors_by_name_and_specialty",
    (True, False, True): "doctors_by_name_and_time",
    (False, True, True): "doctors_by_specialty_and_time",
    (True, True, True): "doctors_by_name_specialty_and_time",
}


def time_matcher(value: str) -> Callable[[time], bool]:
    """Predicate for a time filter: "AM", "PM" or an exact "HH:MM" slot-start."""
    period = PERIODS.get(value.strip().upper())
    if period is not None:
        return period
    wanted = parse_slot_start(value)
    return lambda slot: slot == wanted


def doctor_slot_starts(doctor: Doctor) -> List[time]:
    """Every slot-start the doctor declares, default template and overrides."""
    entries = list(doctor.available_times or [])
    for template in doctor.templates:
        entries.extend(template.slot_times or [])
    return normalize_slots(entries)


class FilterEngine:
    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock

    # Doctor search

    def filter_doctors(
        self,
        name: Optional[str] = None,
        specialty: Optional[str] = None,
        time: Optional[str] = None
    ) -> List[Doctor]:
        name, specialty, time = _present(name), _present(specialty), _present(time)

        method = getattr(self, DOCTOR_QUERIES[(bool(name), bool(specialty), bool(time))])
        return method(*[value for value in (name, specialty, time) if value])

    def all_doctors(self) -> List[Doctor]:
        return self.db.query(Doctor).order_by(Doctor.id).all()

    def doctors_by_name(self, name: str) -> List[Doctor]:
        return self.db.query(Doctor).filter(_name_contains(name)).order_by(Doctor.id).all()

    def doctors_by_specialty(self, specialty: str) -> List[Doctor]:
        return self.db.query(Doctor).filter(_specialty_is(specialty)).order_by(Doctor.id).all()

    def doctors_by_time(self, time: str) -> List[Doctor]:
        return _available_at(self.all_doctors(), time)

    def doctors_by_name_and_specialty(self, name: str, specialty: str) -> List[Doctor]:
        return (
            self.db.query(Doctor)
            .filter(_name_contains(name), _specialty_is(specialty))
            .order_by(Doctor.id)
            .all()
        )

    def doctors_by_name_and_time(self, name: str, time: str) -> List[Doctor]:
        return _available_at(self.doctors_by_name(name), time)

    def doctors_by_specialty_and_time(self, specialty: str, time: str) -> List[Doctor]:
        return _available_at(self.doctors_by_specialty(specialty), time)

    def doctors_by_name_specialty_and_time(self, name: str, specialty: str, time: str) -> List[Doctor]:
        return _available_at(self.doctors_by_name_and_specialty(name, specialty), time)

    # Patient appointment history

    def filter_patient_appointments(
        self,
        patient_id: int,
        condition: Optional[str] = None,
        doctor_name: Optional[str] = None
    ) -> List[Appointment]:
        """Search one patient's history. ``patient_id`` must come from the caller's token."""
        condition, doctor_name = _present(condition), _present(doctor_name)

        if condition and doctor_name:
            return self.appointments_by_condition_and_doctor(patient_id, condition, doctor_name)
        elif condition:
            return self.appointments_by_condition(patient_id, condition)
        elif doctor_name:
            return self.appointments_by_doctor(patient_id, doctor_name)
        return self.patient_history(patient_id)

    def patient_history(self, patient_id: int) -> List[Appointment]:
        return self._history_query(patient_id).all()

    def appointments_by_condition(self, patient_id: int, condition: str) -> List[Appointment]:
        return self._history_query(patient_id).filter(self._condition_clause(condition)).all()

    def appointments_by_doctor(self, patient_id: int, doctor_name: str) -> List[Appointment]:
        return (
            self._history_query(patient_id)
            .join(Doctor, Appointment.doctor_id == Doctor.id)
            .filter(Doctor.name == doctor_name)
            .all()
        )

    def appointments_by_condition_and_doctor(
        self,
        patient_id: int,
        condition: str,
        doctor_name: str
    ) -> List[Appointment]:
        return (
            self._history_query(patient_id)
            .join(Doctor, Appointment.doctor_id == Doctor.id)
            .filter(Doctor.name == doctor_name, self._condition_clause(condition))
            .all()
        )

    def _history_query(self, patient_id: int):
        return (
            self.db.query(Appointment)
            .filter(Appointment.patient_id == patient_id)
            .order_by(Appointment.appointment_time, Appointment.id)
        )

    def _condition_clause(self, condition: str):
        """past: elapsed or already prescribed/completed; future: still scheduled and upcoming."""
        condition = condition.strip().lower()
        now = self.clock()

        if condition == "past":
            return and_(
                Appointment.status != AppointmentStatus.CANCELLED,
                or_(
                    Appointment.status.in_([
                        AppointmentStatus.PRESCRIPTION_ISSUED,
                        AppointmentStatus.COMPLETED,
                    ]),
                    Appointment.appointment_time < now,
                ),
            )
        if condition == "future":
            return and_(
                Appointment.status == AppointmentStatus.SCHEDULED,
                Appointment.appointment_time >= now,
            )
        raise ValidationError(f"Invalid condition {condition!r}. Use 'past' or 'future'.")


def _present(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _name_contains(name: str):
    return Doctor.name.icontains(name, autoescape=True)


def _specialty_is(specialty: str):
    return func.lower(Doctor.specialty) == specialty.lower()


def _available_at(doctors: List[Doctor], value: str) -> List[Doctor]:
    matches = time_matcher(value)
    return [d for d in doctors if any(matches(slot) for slot in doctor_slot_starts(d))]
