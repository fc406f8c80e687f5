"""Holiday model definitions."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Integer, String
from clinic_scheduler.database import Base


class Holiday(Base):
    """A calendar date on which no slots are generated."""
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    description = Column(String(500))
    created_at = Column(DateTime, nullable=False, default=datetime.now)
