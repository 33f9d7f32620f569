from datetime import date, datetime, time

import pytest

from clinic.core.exceptions import NotFound, ValidationError
from clinic.models.appointment import AppointmentStatus
from clinic.models.doctor import AvailabilityTemplate
from clinic.services.availability import (
    SlotAvailabilityResolver, normalize_slots, parse_date, parse_slot_start
)
from clinic.services.validator import AppointmentCheck, AppointmentValidator, SlotRequest

MAY_1 = date(2024, 5, 1)  # a Wednesday


def at(hour, minute, day=MAY_1):
    return datetime.combine(day, time(hour, minute))


class TestParsing:

    def test_parse_date(self):
        assert parse_date("2024-05-01") == MAY_1
        assert parse_date(MAY_1) == MAY_1
        assert parse_date(at(9, 0)) == MAY_1

    @pytest.mark.parametrize("value", ["", "2024-13-01", "01/05/2024", "tomorrow"])
    def test_parse_date_rejects_garbage(self, value):
        with pytest.raises(ValidationError):
            parse_date(value)

    def test_slot_start_from_range(self):
        assert parse_slot_start("09:00-10:00") == time(9, 0)
        assert parse_slot_start("14:30") == time(14, 30)

    def test_slot_start_rejects_garbage(self):
        with pytest.raises(ValidationError):
            parse_slot_start("nine o'clock")

    def test_normalize_sorts_and_dedupes(self):
        assert normalize_slots(["10:00", "09:00-09:30", "09:00"]) == [time(9, 0), time(10, 0)]


class TestSlotAvailabilityResolver:

    def test_full_template_when_nothing_booked(self, db, make_doctor):
        doctor = make_doctor(available_times=["10:00", "09:00", "09:30"])

        slots = SlotAvailabilityResolver(db).available_slots(doctor.id, "2024-05-01")

        assert slots == [at(9, 0), at(9, 30), at(10, 0)]

    def test_booked_slots_removed(self, db, make_doctor, make_patient, make_appointment):
        doctor = make_doctor()
        make_appointment(doctor, make_patient(), at(9, 30))

        slots = SlotAvailabilityResolver(db).available_slots(doctor.id, MAY_1)

        assert at(9, 30) not in slots
        assert slots == [at(9, 0), at(10, 0)]

    def test_cancelled_bookings_do_not_block(self, db, make_doctor, make_patient, make_appointment):
        doctor = make_doctor()
        make_appointment(doctor, make_patient(), at(9, 30), status=AppointmentStatus.CANCELLED)

        slots = SlotAvailabilityResolver(db).available_slots(doctor.id, MAY_1)

        assert at(9, 30) in slots

    @pytest.mark.parametrize("status", [
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.PRESCRIPTION_ISSUED,
        AppointmentStatus.COMPLETED,
    ])
    def test_every_live_status_blocks(self, db, make_doctor, make_patient, make_appointment, status):
        doctor = make_doctor()
        make_appointment(doctor, make_patient(), at(9, 0), status=status)

        slots = SlotAvailabilityResolver(db).available_slots(doctor.id, MAY_1)

        assert at(9, 0) not in slots

    def test_other_days_and_doctors_ignored(self, db, make_doctor, make_patient, make_appointment):
        doctor = make_doctor()
        other = make_doctor(name="Dr. Bob Lee")
        patient = make_patient()
        make_appointment(doctor, patient, at(9, 0, day=date(2024, 5, 2)))
        make_appointment(other, patient, at(9, 30))

        slots = SlotAvailabilityResolver(db).available_slots(doctor.id, MAY_1)

        assert slots == [at(9, 0), at(9, 30), at(10, 0)]

    def test_weekday_template_overrides_default(self, db, make_doctor):
        doctor = make_doctor()
        db.add(AvailabilityTemplate(doctor_id=doctor.id, weekday=MAY_1.weekday(), slot_times=["14:00", "13:00"]))
        db.commit()

        slots = SlotAvailabilityResolver(db).available_slots(doctor.id, MAY_1)

        assert slots == [at(13, 0), at(14, 0)]

    def test_date_template_beats_weekday_template(self, db, make_doctor):
        doctor = make_doctor()
        db.add(AvailabilityTemplate(doctor_id=doctor.id, weekday=MAY_1.weekday(), slot_times=["14:00"]))
        db.add(AvailabilityTemplate(doctor_id=doctor.id, on_date=MAY_1, slot_times=["16:00-17:00"]))
        db.commit()

        resolver = SlotAvailabilityResolver(db)

        assert resolver.available_slots(doctor.id, MAY_1) == [at(16, 0)]
        # The following Wednesday only has the weekday override
        next_week = date(2024, 5, 8)
        assert resolver.available_slots(doctor.id, next_week) == [at(14, 0, day=next_week)]

    def test_exclude_appointment(self, db, make_doctor, make_patient, make_appointment):
        doctor = make_doctor()
        appointment = make_appointment(doctor, make_patient(), at(9, 0))

        slots = SlotAvailabilityResolver(db).available_slots(
            doctor.id, MAY_1, exclude_appointment_id=appointment.id
        )

        assert at(9, 0) in slots

    def test_unknown_doctor(self, db):
        with pytest.raises(NotFound):
            SlotAvailabilityResolver(db).available_slots(99, MAY_1)

    def test_bad_date(self, db, make_doctor):
        doctor = make_doctor()
        with pytest.raises(ValidationError):
            SlotAvailabilityResolver(db).available_slots(doctor.id, "2024-02-30")


class TestAppointmentValidator:

    def test_open_slot_is_valid(self, db, make_doctor):
        doctor = make_doctor()
        check = AppointmentValidator(db).validate(SlotRequest(doctor.id, at(9, 30)))
        assert check is AppointmentCheck.VALID
        assert int(check) == 1

    def test_time_outside_template(self, db, make_doctor):
        doctor = make_doctor()
        check = AppointmentValidator(db).validate(SlotRequest(doctor.id, at(9, 15)))
        assert check is AppointmentCheck.SLOT_UNAVAILABLE
        assert int(check) == 0

    def test_booked_slot(self, db, make_doctor, make_patient, make_appointment):
        doctor = make_doctor()
        make_appointment(doctor, make_patient(), at(9, 30))

        check = AppointmentValidator(db).validate(SlotRequest(doctor.id, at(9, 30)))
        assert check is AppointmentCheck.SLOT_UNAVAILABLE

    def test_missing_doctor(self, db):
        check = AppointmentValidator(db).validate(SlotRequest(99, at(9, 0)))
        assert check is AppointmentCheck.DOCTOR_NOT_FOUND
        assert int(check) == -1

    def test_accepts_orm_appointments(self, db, make_doctor, make_patient, make_appointment):
        """Anything with doctor_id and appointment_time can be checked."""
        doctor = make_doctor()
        appointment = make_appointment(doctor, make_patient(), at(10, 0))

        validator = AppointmentValidator(db)
        assert validator.validate(appointment) is AppointmentCheck.SLOT_UNAVAILABLE
        assert validator.validate(appointment, exclude_appointment_id=appointment.id) is AppointmentCheck.VALID
