from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

class PrescriptionCreate(BaseModel):
    appointment_id: int
    patient_name: str = Field(..., min_length=1, max_length=100)
    medication: str = Field(..., min_length=1, max_length=255)
    dosage: str = Field(..., min_length=1, max_length=100)
    doctor_notes: Optional[str] = None

class PrescriptionResponse(BaseModel):
    id: int
    appointment_id: int
    patient_name: str
    medication: str
    dosage: str
    doctor_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True
