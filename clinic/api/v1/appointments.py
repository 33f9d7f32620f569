from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_doctor, get_current_patient, optional_filter
from ...models.doctor import Doctor
from ...models.patient import Patient
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import (
    AppointmentCheckResponse, AppointmentCreate, AppointmentResponse, AppointmentUpdate
)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.get("", response_model=List[AppointmentResponse])
async def get_doctor_appointments(
    date: str,
    patient_name: Optional[str] = None,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    """The calling doctor's appointments on a date (doctor only)."""
    appointments = AppointmentService(db).for_doctor_on(
        doctor, date, patient_name=optional_filter(patient_name)
    )
    return [AppointmentResponse.from_appointment(a) for a in appointments]

@router.post("/validate", response_model=AppointmentCheckResponse)
async def validate_appointment(
    appointment_data: AppointmentCreate,
    _: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    """Report whether a slot is bookable right now without reserving it."""
    check = AppointmentService(db).check(
        appointment_data.doctor_id, appointment_data.appointment_time
    )
    return AppointmentCheckResponse.from_check(check)

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    appointment_data: AppointmentCreate,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    """Book a slot for the calling patient."""
    appointment = AppointmentService(db).book(
        patient, appointment_data.doctor_id, appointment_data.appointment_time
    )
    return AppointmentResponse.from_appointment(appointment)

@router.put("", response_model=AppointmentResponse)
async def update_appointment(
    appointment_data: AppointmentUpdate,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    """Reschedule one of the calling patient's scheduled appointments."""
    appointment = AppointmentService(db).reschedule(
        patient,
        appointment_data.id,
        appointment_data.appointment_time,
        doctor_id=appointment_data.doctor_id,
    )
    return AppointmentResponse.from_appointment(appointment)

@router.delete("/{appointment_id}", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    """Cancel one of the calling patient's appointments."""
    appointment = AppointmentService(db).cancel(patient, appointment_id)
    return AppointmentResponse.from_appointment(appointment)

@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    """Mark a prescribed appointment as completed (doctor only)."""
    appointment = AppointmentService(db).complete(doctor, appointment_id)
    return AppointmentResponse.from_appointment(appointment)
