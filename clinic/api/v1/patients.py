from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_patient, optional_filter, rate_limit_check
from ...models.patient import Patient
from ...services.filters import FilterEngine
from ...services.patient_service import PatientService
from ...schemas.appointment import AppointmentResponse
from ...schemas.patient import PatientRegister, PatientResponse

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def register_patient(
    patient_data: PatientRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new patient."""
    return PatientService(db).register_patient(patient_data)

@router.get("/me", response_model=PatientResponse)
async def get_patient_details(
    patient: Patient = Depends(get_current_patient)
):
    """The calling patient's own record."""
    return patient

@router.get("/appointments", response_model=List[AppointmentResponse])
async def get_patient_appointments(
    condition: Optional[str] = None,
    doctor_name: Optional[str] = None,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    """The calling patient's appointment history, optionally filtered.

    ``condition`` is "past" or "future"; ``doctor_name`` must match exactly.
    """
    appointments = FilterEngine(db).filter_patient_appointments(
        patient.id,
        condition=optional_filter(condition),
        doctor_name=optional_filter(doctor_name),
    )
    return [AppointmentResponse.from_appointment(a) for a in appointments]
