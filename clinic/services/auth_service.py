from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..models.admin import Admin
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..core.exceptions import Unauthorized
from ..core.security import (
    TokenAuthority, UserRole, verify_password, get_password_hash
)
from ..schemas.auth import AdminLogin, Login, TokenResponse

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session, authority: Optional[TokenAuthority] = None):
        self.db = db
        self.authority = authority or TokenAuthority()

    def login_admin(self, login_data: AdminLogin) -> TokenResponse:
        """Authenticate an admin by username and return an admin token."""
        admin = self.db.query(Admin).filter(
            Admin.username == login_data.username
        ).first()

        if not admin or not verify_password(login_data.password, admin.password_hash):
            logger.info(f"Failed admin login for {login_data.username!r}")
            raise Unauthorized("Invalid username or password.")

        return self._issue(admin.username, UserRole.ADMIN)

    def login_doctor(self, login_data: Login) -> TokenResponse:
        """Authenticate a doctor by email and return a doctor token."""
        doctor = self.db.query(Doctor).filter(
            Doctor.email == login_data.email
        ).first()

        if not doctor or not doctor.password_hash or not verify_password(
            login_data.password, doctor.password_hash
        ):
            logger.info("Failed doctor login")
            raise Unauthorized("Invalid email or password.")

        return self._issue(doctor.email, UserRole.DOCTOR)

    def login_patient(self, login_data: Login) -> TokenResponse:
        """Authenticate a patient by email and return a patient token."""
        patient = self.db.query(Patient).filter(
            Patient.email == login_data.email
        ).first()

        if not patient or not verify_password(login_data.password, patient.password_hash):
            logger.info("Failed patient login")
            raise Unauthorized("Invalid email or password.")

        return self._issue(patient.email, UserRole.PATIENT)

    def ensure_admin(self, username: str, password: str) -> Admin:
        """Create the configured admin account if it does not exist yet."""
        admin = self.db.query(Admin).filter(Admin.username == username).first()
        if admin:
            return admin

        admin = Admin(username=username, password_hash=get_password_hash(password))
        self.db.add(admin)
        self.db.commit()
        self.db.refresh(admin)

        logger.info(f"Created admin account {username!r}")
        return admin

    def _issue(self, subject: str, role: UserRole) -> TokenResponse:
        return TokenResponse(
            token=self.authority.issue(subject, role),
            role=role,
            expires_in=self.authority.expire_minutes * 60
        )
