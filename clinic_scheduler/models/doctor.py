"""Doctor model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from clinic_scheduler.database import Base


class Doctor(Base):
    """Represents a doctor who can be scheduled."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    medical_code = Column(String(50), unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, onupdate=datetime.now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
