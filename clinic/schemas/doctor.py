from datetime import date
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

class DoctorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    specialty: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    available_times: List[str] = []

class DoctorCreate(DoctorBase):
    password: str = Field(..., min_length=6)

class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    specialty: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    password: Optional[str] = Field(None, min_length=6)
    available_times: Optional[List[str]] = None

class DoctorResponse(DoctorBase):
    id: int
    
    class Config:
        from_attributes = True

class AvailabilityTemplateIn(BaseModel):
    """Slot-starts for one weekday (Monday == 0) or one specific date."""
    weekday: Optional[int] = Field(None, ge=0, le=6)
    on_date: Optional[date] = None
    slot_times: List[str]
    
    @model_validator(mode="after")
    def one_scope(self):
        if (self.weekday is None) == (self.on_date is None):
            raise ValueError("Provide exactly one of weekday or on_date")
        return self

class AvailabilityTemplateResponse(BaseModel):
    id: int
    doctor_id: int
    weekday: Optional[int] = None
    on_date: Optional[date] = None
    slot_times: List[str]
    
    class Config:
        from_attributes = True

class AvailabilityResponse(BaseModel):
    doctor_id: int
    date: date
    available_slots: List[str]
