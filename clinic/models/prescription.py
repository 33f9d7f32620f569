from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Prescription(Base):
    __tablename__ = "prescriptions"
    
    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), unique=True, nullable=False)
    
    # Contents
    patient_name = Column(String(100), nullable=False)
    medication = Column(String(255), nullable=False)
    dosage = Column(String(100), nullable=False)
    doctor_notes = Column(Text, nullable=True)
    
    created_at = Column(DateTime, server_default=func.now())
    
    appointment = relationship("Appointment", back_populates="prescription")
    
    def __repr__(self):
        return f"<Prescription(id={self.id}, appointment_id={self.appointment_id})>"
