from sqlalchemy import Column, Integer, ForeignKey, DateTime, Index, Enum as SQLEnum, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    PRESCRIPTION_ISSUED = "prescription_issued"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# At most one live booking per doctor and slot-start
_ACTIVE_ONLY = text("status != 'cancelled'")

class Appointment(Base):
    __tablename__ = "appointments"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Relationships
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    
    # Appointment details
    appointment_time = Column(DateTime, nullable=False, index=True)
    status = Column(
        SQLEnum(
            AppointmentStatus,
            name="appointment_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    
    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    __table_args__ = (
        Index(
            "uq_appointments_doctor_slot_active",
            "doctor_id",
            "appointment_time",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
    )
    
    # Relationships
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    prescription = relationship(
        "Prescription", back_populates="appointment", uselist=False, cascade="all, delete-orphan"
    )
    
    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, time='{self.appointment_time}', status='{self.status}')>"
