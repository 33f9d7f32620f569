from pydantic import BaseModel, EmailStr, Field

from ..core.security import UserRole

class AdminLogin(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)

class Login(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    role: UserRole
    expires_in: int

class TokenCheck(BaseModel):
    valid: bool = True
    subject: str
    role: UserRole
    expires: int
