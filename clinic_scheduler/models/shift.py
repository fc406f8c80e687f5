"""Shift model definitions."""

from sqlalchemy import Column, Integer, String, Time
from clinic_scheduler.database import Base


class Shift(Base):
    """Named working window (e.g. morning) used to prefill schedules."""
    __tablename__ = "shifts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    description = Column(String(500))
