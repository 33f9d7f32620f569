from datetime import date, datetime

import pytest

from clinic.core.exceptions import ValidationError
from clinic.models.appointment import AppointmentStatus
from clinic.models.doctor import AvailabilityTemplate
from clinic.services.doctor_service import DoctorService
from clinic.services.filters import DOCTOR_QUERIES, FilterEngine

NOW = datetime(2026, 1, 15, 12, 0)


@pytest.fixture
def doctors(make_doctor):
    return {
        "smith": make_doctor(name="Dr. Alice Smith", specialty="Cardiology", available_times=["09:00", "09:30"]),
        "smithers": make_doctor(name="Dr. Sam Smithers", specialty="Dermatology", available_times=["14:00"]),
        "lee": make_doctor(name="Dr. Bob Lee", specialty="Cardiology", available_times=["15:30-16:00"]),
        "ng": make_doctor(name="Dr. Ana Ng", specialty="Pediatrics", available_times=[]),
    }


def names(result):
    return [d.name for d in result]


class TestDoctorFilters:

    def test_no_predicates_matches_listing(self, db, doctors):
        listing = DoctorService(db).list_doctors()
        filtered = FilterEngine(db).filter_doctors(None, None, None)

        assert [d.id for d in filtered] == [d.id for d in listing]
        assert len(filtered) == 4

    def test_blank_predicates_ignored(self, db, doctors):
        assert len(FilterEngine(db).filter_doctors(" ", "", None)) == 4

    def test_name_substring_case_insensitive(self, db, doctors):
        assert names(FilterEngine(db).filter_doctors(name="smith")) == ["Dr. Alice Smith", "Dr. Sam Smithers"]

    def test_name_wildcards_are_literal(self, db, doctors):
        assert FilterEngine(db).filter_doctors(name="%") == []

    def test_specialty_exact(self, db, doctors):
        engine = FilterEngine(db)
        assert names(engine.filter_doctors(specialty="cardiology")) == ["Dr. Alice Smith", "Dr. Bob Lee"]
        assert engine.filter_doctors(specialty="Cardio") == []

    def test_exact_time(self, db, doctors):
        engine = FilterEngine(db)
        assert names(engine.filter_doctors(time="09:30")) == ["Dr. Alice Smith"]
        assert names(engine.filter_doctors(time="15:30")) == ["Dr. Bob Lee"]
        assert engine.filter_doctors(time="08:00") == []

    def test_period_time(self, db, doctors):
        engine = FilterEngine(db)
        assert names(engine.filter_doctors(time="AM")) == ["Dr. Alice Smith"]
        assert names(engine.filter_doctors(time="pm")) == ["Dr. Sam Smithers", "Dr. Bob Lee"]

    def test_time_includes_template_overrides(self, db, doctors):
        db.add(AvailabilityTemplate(doctor_id=doctors["ng"].id, on_date=date(2024, 5, 1), slot_times=["08:00"]))
        db.commit()

        assert names(FilterEngine(db).filter_doctors(time="08:00")) == ["Dr. Ana Ng"]

    def test_bad_time(self, db, doctors):
        with pytest.raises(ValidationError):
            FilterEngine(db).filter_doctors(time="noonish")

    def test_name_and_specialty(self, db, doctors):
        engine = FilterEngine(db)
        assert names(engine.filter_doctors(name="smith", specialty="Dermatology")) == ["Dr. Sam Smithers"]
        assert engine.filter_doctors(name="lee", specialty="Dermatology") == []

    def test_name_and_time(self, db, doctors):
        engine = FilterEngine(db)
        assert names(engine.filter_doctors(name="smith", time="PM")) == ["Dr. Sam Smithers"]
        assert engine.filter_doctors(name="lee", time="AM") == []

    def test_specialty_and_time(self, db, doctors):
        engine = FilterEngine(db)
        assert names(engine.filter_doctors(specialty="Cardiology", time="PM")) == ["Dr. Bob Lee"]
        assert names(engine.filter_doctors(specialty="Cardiology", time="09:00")) == ["Dr. Alice Smith"]

    def test_all_three(self, db, doctors):
        engine = FilterEngine(db)
        assert names(engine.filter_doctors("Alice", "Cardiology", "09:30")) == ["Dr. Alice Smith"]
        assert engine.filter_doctors("Alice", "Cardiology", "PM") == []

    def test_every_combination_has_a_query(self, db):
        assert len(DOCTOR_QUERIES) == 8
        for method in DOCTOR_QUERIES.values():
            assert callable(getattr(FilterEngine(db), method))


class TestPatientAppointmentFilters:

    @pytest.fixture
    def history(self, make_doctor, make_patient, make_appointment):
        smith = make_doctor(name="Dr. Alice Smith")
        lee = make_doctor(name="Dr. Bob Lee")
        mine = make_patient(name="Pat Jones")
        theirs = make_patient(name="Sam Other")

        appointments = {
            "elapsed": make_appointment(smith, mine, datetime(2025, 3, 1, 9, 0)),
            "prescribed": make_appointment(lee, mine, datetime(2025, 4, 1, 9, 0), AppointmentStatus.PRESCRIPTION_ISSUED),
            "completed": make_appointment(smith, mine, datetime(2025, 5, 1, 9, 0), AppointmentStatus.COMPLETED),
            "cancelled": make_appointment(smith, mine, datetime(2025, 6, 1, 9, 0), AppointmentStatus.CANCELLED),
            "upcoming": make_appointment(lee, mine, datetime(2026, 2, 1, 9, 0)),
            "upcoming_smith": make_appointment(smith, mine, datetime(2026, 3, 1, 9, 30)),
            "other_patient": make_appointment(smith, theirs, datetime(2025, 3, 1, 9, 30)),
        }
        return mine, theirs, appointments

    def ids(self, appointments, *keys):
        return [appointments[k].id for k in keys]

    def test_full_history(self, db, history):
        mine, _, appointments = history

        result = FilterEngine(db, clock=lambda: NOW).filter_patient_appointments(mine.id)

        assert [a.id for a in result] == self.ids(
            appointments, "elapsed", "prescribed", "completed", "cancelled", "upcoming", "upcoming_smith"
        )

    def test_past(self, db, history):
        mine, _, appointments = history

        result = FilterEngine(db, clock=lambda: NOW).filter_patient_appointments(mine.id, condition="past")

        assert [a.id for a in result] == self.ids(appointments, "elapsed", "prescribed", "completed")

    def test_future(self, db, history):
        mine, _, appointments = history

        result = FilterEngine(db, clock=lambda: NOW).filter_patient_appointments(mine.id, condition="FUTURE")

        assert [a.id for a in result] == self.ids(appointments, "upcoming", "upcoming_smith")

    def test_doctor_name_exact(self, db, history):
        mine, _, appointments = history
        engine = FilterEngine(db, clock=lambda: NOW)

        result = engine.filter_patient_appointments(mine.id, doctor_name="Dr. Bob Lee")

        assert [a.id for a in result] == self.ids(appointments, "prescribed", "upcoming")
        assert engine.filter_patient_appointments(mine.id, doctor_name="Bob") == []

    def test_condition_and_doctor(self, db, history):
        mine, _, appointments = history
        engine = FilterEngine(db, clock=lambda: NOW)

        past_smith = engine.filter_patient_appointments(mine.id, condition="past", doctor_name="Dr. Alice Smith")
        future_smith = engine.filter_patient_appointments(mine.id, condition="future", doctor_name="Dr. Alice Smith")

        assert [a.id for a in past_smith] == self.ids(appointments, "elapsed", "completed")
        assert [a.id for a in future_smith] == self.ids(appointments, "upcoming_smith")

    def test_never_returns_other_patients(self, db, history):
        mine, theirs, appointments = history
        engine = FilterEngine(db, clock=lambda: NOW)

        for condition in (None, "past", "future"):
            for doctor_name in (None, "Dr. Alice Smith"):
                result = engine.filter_patient_appointments(mine.id, condition, doctor_name)
                assert all(a.patient_id == mine.id for a in result)

        assert [a.id for a in engine.filter_patient_appointments(theirs.id)] == self.ids(appointments, "other_patient")

    @pytest.mark.parametrize("condition", ["yesterday", "pending", "later"])
    def test_invalid_condition(self, db, history, condition):
        mine, _, _ = history
        with pytest.raises(ValidationError):
            FilterEngine(db).filter_patient_appointments(mine.id, condition=condition)

    def test_invalid_condition_with_doctor(self, db, history):
        mine, _, _ = history
        with pytest.raises(ValidationError):
            FilterEngine(db).filter_patient_appointments(mine.id, condition="soon", doctor_name="Dr. Bob Lee")
