from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.appointment import Appointment, AppointmentStatus
from ..services.validator import AppointmentCheck

class AppointmentCreate(BaseModel):
    doctor_id: int
    appointment_time: datetime

class AppointmentUpdate(BaseModel):
    id: int
    appointment_time: datetime
    doctor_id: Optional[int] = None

class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    doctor_name: Optional[str] = None
    patient_id: int
    patient_name: Optional[str] = None
    appointment_time: datetime
    status: AppointmentStatus
    
    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            doctor_id=appointment.doctor_id,
            doctor_name=appointment.doctor.name if appointment.doctor else None,
            patient_id=appointment.patient_id,
            patient_name=appointment.patient.name if appointment.patient else None,
            appointment_time=appointment.appointment_time,
            status=appointment.status,
        )

class AppointmentCheckResponse(BaseModel):
    result: int
    outcome: str
    
    @classmethod
    def from_check(cls, check: AppointmentCheck) -> "AppointmentCheckResponse":
        return cls(result=int(check), outcome=check.name.lower())
