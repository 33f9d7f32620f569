from datetime import datetime, timedelta
from typing import Optional, Union
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import HTTPBearer
from pydantic import BaseModel
from enum import Enum
import hashlib
import logging
import time

import redis

from .config import settings
from .exceptions import Unauthorized

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# JWT Security
security = HTTPBearer(auto_error=False)

class UserRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    role: Optional[str] = None
    exp: Optional[int] = None
    token_type: Optional[str] = None

# Password utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)

def _coerce_role(role: Union[UserRole, str]) -> UserRole:
    try:
        return UserRole(role)
    except ValueError:
        raise Unauthorized()


class TokenAuthority:
    """Issues and verifies role-bound JWT access tokens.

    Roles are compared by equality only: a token satisfies exactly the
    role it was issued for. Every verification failure is reported as
    the same ``Unauthorized`` error; the specific cause is only logged.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None,
    ):
        self.secret_key = secret_key or settings.SECRET_KEY
        self.algorithm = algorithm or settings.ALGORITHM
        self.expire_minutes = expire_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES

    def issue(
        self,
        subject: str,
        role: Union[UserRole, str],
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create a signed access token binding subject to role."""
        role = UserRole(role)
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.expire_minutes)

        to_encode = {
            "sub": str(subject),
            "role": role.value,
            "exp": datetime.utcnow() + expires_delta,
            "token_type": "access",
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> TokenPayload:
        """Verify signature and expiry, returning the claims."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            logger.info("Token rejected: expired")
            raise Unauthorized()
        except JWTError as e:
            logger.info(f"Token rejected: malformed or bad signature ({e})")
            raise Unauthorized()

        return TokenPayload(**payload)

    def validate(self, token: str, required_role: Union[UserRole, str]) -> TokenPayload:
        """Accept the token only if it is an unexpired access token for required_role."""
        required_role = _coerce_role(required_role)
        payload = self.decode(token)

        if payload.token_type != "access":
            logger.info(f"Token rejected: unexpected token type {payload.token_type!r}")
            raise Unauthorized()

        if payload.role != required_role.value:
            logger.info(
                f"Token rejected: role {payload.role!r} does not match "
                f"required role {required_role.value!r}"
            )
            raise Unauthorized()

        if not payload.sub:
            logger.info("Token rejected: missing subject")
            raise Unauthorized()

        return payload

    def extract_subject(self, token: str) -> str:
        """Return the subject of a verified token."""
        payload = self.decode(token)
        if not payload.sub:
            raise Unauthorized("Malformed token")
        return payload.sub


class AccessGate:
    """Precondition check run before every privileged operation.

    ``require`` either returns the verified claims or raises
    ``Unauthorized`` before any store is touched. Successful checks can be
    remembered in Redis; an entry never outlives the token it describes.
    """

    CACHE_PREFIX = "token_ok"

    def __init__(
        self,
        authority: TokenAuthority,
        cache=None,
        cache_seconds: Optional[int] = None
    ):
        self.authority = authority
        self.cache = cache
        self.cache_seconds = settings.TOKEN_CACHE_SECONDS if cache_seconds is None else cache_seconds

    def require(self, token: str, role: Union[UserRole, str]) -> TokenPayload:
        role = _coerce_role(role)
        if not token:
            raise Unauthorized()

        key = self._cache_key(token, role)
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        payload = self.authority.validate(token, role)
        self._cache_put(key, payload)
        return payload

    def _cache_key(self, token: str, role: UserRole) -> str:
        digest = hashlib.sha256(token.encode()).hexdigest()
        return f"{self.CACHE_PREFIX}:{role.value}:{digest}"

    def _cache_get(self, key: str) -> Optional[TokenPayload]:
        if self.cache is None or self.cache_seconds <= 0:
            return None
        try:
            raw = self.cache.get(key)
        except redis.RedisError as e:
            logger.warning(f"Token cache unavailable, verifying directly: {e}")
            return None
        if raw is None:
            return None
        payload = TokenPayload.model_validate_json(raw)
        # Redis expiry is coarse; never honor a cached entry past the token's own expiry
        if payload.exp is not None and payload.exp <= time.time():
            return None
        return payload

    def _cache_put(self, key: str, payload: TokenPayload) -> None:
        if self.cache is None or self.cache_seconds <= 0 or payload.exp is None:
            return
        ttl = min(self.cache_seconds, int(payload.exp - time.time()))
        if ttl <= 0:
            return
        try:
            self.cache.setex(key, ttl, payload.model_dump_json())
        except redis.RedisError as e:
            logger.warning(f"Could not cache token check: {e}")
