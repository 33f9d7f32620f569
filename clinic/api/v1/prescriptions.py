from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_doctor
from ...models.doctor import Doctor
from ...services.prescription_service import PrescriptionService
from ...schemas.prescription import PrescriptionCreate, PrescriptionResponse

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])

@router.post("", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def save_prescription(
    prescription_data: PrescriptionCreate,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    """Issue a prescription for one of the calling doctor's appointments."""
    return PrescriptionService(db).save_prescription(doctor, prescription_data)

@router.get("/{appointment_id}", response_model=PrescriptionResponse)
async def get_prescription(
    appointment_id: int,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    """Fetch the prescription attached to an appointment."""
    return PrescriptionService(db).get_for_appointment(doctor, appointment_id)
