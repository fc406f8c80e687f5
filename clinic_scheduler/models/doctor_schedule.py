"""Weekly doctor schedule template definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Time
from sqlalchemy.orm import relationship
from clinic_scheduler.database import Base
from clinic_scheduler.models import clinic, doctor  # noqa: F401  (relationship targets)


class DoctorSchedule(Base):
    """A doctor's recurring availability window on one day of the week.

    ``day_of_week`` uses the Saturday-first numbering of ``DayOfWeek``.
    Each occurrence is split into ``slot_duration_minutes`` long slots that
    each accept ``capacity`` patients.
    """
    __tablename__ = "doctor_schedules"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    shift_id = Column(Integer, ForeignKey("shifts.id"), nullable=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=False, default=1)
    clinic_id = Column(Integer, ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, onupdate=datetime.now)

    doctor = relationship("Doctor")
    clinic = relationship("Clinic")

    __table_args__ = (
        Index("idx_doctor_schedules_doctor_day", "doctor_id", "day_of_week"),
    )
