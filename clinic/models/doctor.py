from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, JSON, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Personal information
    name = Column(String(100), nullable=False, index=True)
    specialty = Column(String(100), nullable=False, index=True)
    
    # Contact and credentials
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    password_hash = Column(String(255), nullable=True)
    
    # Default availability template: ordered slot-starts, e.g. ["09:00", "09:30"]
    available_times = Column(JSON, nullable=False, default=list)
    
    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    appointments = relationship(
        "Appointment", back_populates="doctor", cascade="all, delete-orphan"
    )
    templates = relationship(
        "AvailabilityTemplate", back_populates="doctor", cascade="all, delete-orphan"
    )
    
    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', specialty='{self.specialty}')>"

class AvailabilityTemplate(Base):
    """Slot-starts overriding a doctor's default template on a weekday or a single date."""
    __tablename__ = "availability_templates"
    
    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    
    # Exactly one of these is set; weekday follows date.weekday() (Monday == 0)
    weekday = Column(Integer, nullable=True)
    on_date = Column(Date, nullable=True)
    
    slot_times = Column(JSON, nullable=False, default=list)
    
    __table_args__ = (
        UniqueConstraint("doctor_id", "weekday", name="uq_template_doctor_weekday"),
        UniqueConstraint("doctor_id", "on_date", name="uq_template_doctor_date"),
        CheckConstraint(
            "(weekday IS NULL) != (on_date IS NULL)",
            name="ck_template_weekday_or_date"
        ),
    )
    
    doctor = relationship("Doctor", back_populates="templates")
    
    def __repr__(self):
        scope = self.on_date if self.on_date is not None else f"weekday {self.weekday}"
        return f"<AvailabilityTemplate(doctor_id={self.doctor_id}, {scope})>"
