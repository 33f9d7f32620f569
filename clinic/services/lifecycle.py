"""
Appointment status state machine.

    scheduled -> prescription_issued -> completed
        |                 |
        +-----------------+--> cancelled

``completed`` and ``cancelled`` are terminal.
"""
import logging
from typing import Dict, FrozenSet

from sqlalchemy.orm import Session

from ..core.exceptions import InvalidTransition, NotFound
from ..models.appointment import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.PRESCRIPTION_ISSUED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.PRESCRIPTION_ISSUED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)


class AppointmentLifecycle:
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
        return target in TRANSITIONS[AppointmentStatus(current)]

    def load(self, appointment_id: int, for_update: bool = False) -> Appointment:
        """Fetch an appointment, row-locked when the backend supports it."""
        query = self.db.query(Appointment).filter(Appointment.id == appointment_id)
        if for_update:
            # Overwrite any copy already in the session with the locked row
            query = query.with_for_update().populate_existing()
        appointment = query.first()
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        return appointment

    def transition(self, appointment: Appointment, target: AppointmentStatus) -> Appointment:
        """Move to target or raise InvalidTransition. Does not commit."""
        current = AppointmentStatus(appointment.status)
        if not self.can_transition(current, target):
            raise InvalidTransition(
                f"Cannot change appointment {appointment.id} from {current.value} to {target.value}"
            )

        appointment.status = target
        logger.info(f"Appointment {appointment.id}: {current.value} -> {target.value}")
        return appointment

    def ensure_reschedulable(self, appointment: Appointment) -> None:
        if AppointmentStatus(appointment.status) != AppointmentStatus.SCHEDULED:
            raise InvalidTransition(
                f"Appointment {appointment.id} is {AppointmentStatus(appointment.status).value} "
                "and can no longer be rescheduled"
            )

    def cancel(self, appointment: Appointment) -> Appointment:
        return self.transition(appointment, AppointmentStatus.CANCELLED)

    def issue_prescription(self, appointment: Appointment) -> Appointment:
        return self.transition(appointment, AppointmentStatus.PRESCRIPTION_ISSUED)

    def complete(self, appointment: Appointment) -> Appointment:
        return self.transition(appointment, AppointmentStatus.COMPLETED)
