from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
import logging

import redis

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.exceptions import RateLimited, Unauthorized
from ..core.security import (
    security, AccessGate, TokenAuthority, TokenPayload, UserRole
)
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..services.doctor_service import DoctorService
from ..services.patient_service import PatientService

logger = logging.getLogger(__name__)

token_authority = TokenAuthority()

def get_token_authority() -> TokenAuthority:
    """Get the process-wide token authority."""
    return token_authority

def get_access_gate(
    authority: TokenAuthority = Depends(get_token_authority),
    redis_client = Depends(get_redis)
) -> AccessGate:
    """Access gate backed by the Redis token cache."""
    return AccessGate(authority, cache=redis_client)

async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """Extract the raw token from the Authorization header."""
    if credentials is None:
        raise Unauthorized("Not authenticated")
    return credentials.credentials

# Role-based access control dependencies
def require_role(role: UserRole):
    """Create a dependency that admits only tokens issued for exactly this role."""
    async def role_checker(
        token: str = Depends(get_bearer_token),
        gate: AccessGate = Depends(get_access_gate)
    ) -> TokenPayload:
        return gate.require(token, role)

    return role_checker

async def get_admin_token(
    payload: TokenPayload = Depends(require_role(UserRole.ADMIN))
) -> TokenPayload:
    """Require admin role."""
    return payload

async def get_current_doctor(
    payload: TokenPayload = Depends(require_role(UserRole.DOCTOR)),
    db: Session = Depends(get_db)
) -> Doctor:
    """Resolve the doctor a doctor token was issued to."""
    doctor = DoctorService(db).get_by_email(payload.sub)
    if not doctor:
        raise Unauthorized("Doctor not found")
    return doctor

async def get_current_patient(
    payload: TokenPayload = Depends(require_role(UserRole.PATIENT)),
    db: Session = Depends(get_db)
) -> Patient:
    """Resolve the patient a patient token was issued to."""
    patient = PatientService(db).get_by_email(payload.sub)
    if not patient:
        raise Unauthorized("Patient not found")
    return patient

def optional_filter(value: Optional[str]) -> Optional[str]:
    """Treat blank and literal "null" filter values as absent."""
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() == "null":
        return None
    return value

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Throttle login attempts per client address."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    try:
        current_requests = redis_client.incr(key)
        if current_requests == 1:
            redis_client.expire(key, settings.LOGIN_RATE_WINDOW_SECONDS)
    except redis.RedisError as e:
        logger.warning(f"Rate limiter unavailable: {e}")
        return None

    if current_requests > settings.LOGIN_RATE_LIMIT:
        raise RateLimited()
