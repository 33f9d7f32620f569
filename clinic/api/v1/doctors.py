from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.security import AccessGate, TokenPayload, UserRole
from ...api.deps import get_access_gate, get_admin_token, get_bearer_token, optional_filter
from ...services.availability import SlotAvailabilityResolver, format_slot, parse_date
from ...services.doctor_service import DoctorService
from ...services.filters import FilterEngine
from ...schemas.doctor import (
    AvailabilityResponse, AvailabilityTemplateIn, AvailabilityTemplateResponse,
    DoctorCreate, DoctorResponse, DoctorUpdate
)

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorResponse])
async def list_doctors(db: Session = Depends(get_db)):
    """List every doctor."""
    return DoctorService(db).list_doctors()

@router.get("/filter", response_model=List[DoctorResponse])
async def filter_doctors(
    name: Optional[str] = None,
    specialty: Optional[str] = None,
    time: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Search doctors by name substring, specialty and slot time ("HH:MM", "AM" or "PM")."""
    return FilterEngine(db).filter_doctors(
        name=optional_filter(name),
        specialty=optional_filter(specialty),
        time=optional_filter(time),
    )

@router.get("/{doctor_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    doctor_id: int,
    date: str,
    role: UserRole = UserRole.PATIENT,
    token: str = Depends(get_bearer_token),
    gate: AccessGate = Depends(get_access_gate),
    db: Session = Depends(get_db)
):
    """Open slots for a doctor on a date, for a caller holding a token of the stated role."""
    gate.require(token, role)
    day = parse_date(date)
    slots = SlotAvailabilityResolver(db).available_slots(doctor_id, day)
    return AvailabilityResponse(
        doctor_id=doctor_id,
        date=day,
        available_slots=[format_slot(slot.time()) for slot in slots],
    )

@router.post("", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
async def create_doctor(
    doctor_data: DoctorCreate,
    _: TokenPayload = Depends(get_admin_token),
    db: Session = Depends(get_db)
):
    """Add a doctor (admin only)."""
    return DoctorService(db).create_doctor(doctor_data)

@router.put("/{doctor_id}", response_model=DoctorResponse)
async def update_doctor(
    doctor_id: int,
    doctor_data: DoctorUpdate,
    _: TokenPayload = Depends(get_admin_token),
    db: Session = Depends(get_db)
):
    """Update a doctor's details or default availability (admin only)."""
    return DoctorService(db).update_doctor(doctor_id, doctor_data)

@router.delete("/{doctor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_doctor(
    doctor_id: int,
    _: TokenPayload = Depends(get_admin_token),
    db: Session = Depends(get_db)
):
    """Remove a doctor and their appointments (admin only)."""
    DoctorService(db).delete_doctor(doctor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.put("/{doctor_id}/templates", response_model=AvailabilityTemplateResponse)
async def set_availability_template(
    doctor_id: int,
    template_data: AvailabilityTemplateIn,
    _: TokenPayload = Depends(get_admin_token),
    db: Session = Depends(get_db)
):
    """Set the slots for one weekday or one date, overriding the default template (admin only)."""
    return DoctorService(db).set_template(doctor_id, template_data)

@router.delete("/{doctor_id}/templates", status_code=status.HTTP_204_NO_CONTENT)
async def remove_availability_template(
    doctor_id: int,
    weekday: Optional[int] = None,
    on_date: Optional[date] = None,
    _: TokenPayload = Depends(get_admin_token),
    db: Session = Depends(get_db)
):
    """Drop a weekday or date override (admin only)."""
    DoctorService(db).remove_template(doctor_id, weekday=weekday, on_date=on_date)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
