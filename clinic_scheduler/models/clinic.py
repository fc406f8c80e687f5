"""Clinic model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from clinic_scheduler.database import Base


class Clinic(Base):
    """Represents a clinic where doctors hold shifts."""
    __tablename__ = "clinics"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    address = Column(String(500))
    phone = Column(String(50))
    is_active = Column(Boolean, nullable=False, default=True)
    # How far ahead slots may be generated for this clinic; unlimited when null.
    appointment_generation_days = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, onupdate=datetime.now)
