from typing import Optional

from pydantic import BaseModel, EmailStr, Field

class PatientRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., pattern=r"^\+?[0-9][0-9 -]{5,18}$")
    address: Optional[str] = Field(None, max_length=255)
    password: str = Field(..., min_length=6)

class PatientResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: str
    address: Optional[str] = None
    
    class Config:
        from_attributes = True
