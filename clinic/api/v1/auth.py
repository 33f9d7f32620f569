from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.security import AccessGate, UserRole
from ...api.deps import (
    get_access_gate, get_bearer_token, get_token_authority, rate_limit_check
)
from ...services.auth_service import AuthService
from ...schemas.auth import AdminLogin, Login, TokenCheck, TokenResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/admin/login", response_model=TokenResponse)
async def admin_login(
    login_data: AdminLogin,
    db: Session = Depends(get_db),
    authority = Depends(get_token_authority),
    _: None = Depends(rate_limit_check)
):
    """Authenticate an admin and return an admin token."""
    return AuthService(db, authority).login_admin(login_data)

@router.post("/doctor/login", response_model=TokenResponse)
async def doctor_login(
    login_data: Login,
    db: Session = Depends(get_db),
    authority = Depends(get_token_authority),
    _: None = Depends(rate_limit_check)
):
    """Authenticate a doctor and return a doctor token."""
    return AuthService(db, authority).login_doctor(login_data)

@router.post("/patient/login", response_model=TokenResponse)
async def patient_login(
    login_data: Login,
    db: Session = Depends(get_db),
    authority = Depends(get_token_authority),
    _: None = Depends(rate_limit_check)
):
    """Authenticate a patient and return a patient token."""
    return AuthService(db, authority).login_patient(login_data)

@router.get("/verify/{role}", response_model=TokenCheck)
async def verify_token_endpoint(
    role: UserRole,
    token: str = Depends(get_bearer_token),
    gate: AccessGate = Depends(get_access_gate)
):
    """Check that the bearer token is valid for exactly this role."""
    payload = gate.require(token, role)
    return TokenCheck(subject=payload.sub, role=payload.role, expires=payload.exp)
