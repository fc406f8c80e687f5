"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Time
from clinic_scheduler.database import Base
from clinic_scheduler.models.enums import AppointmentStatus


class Appointment(Base):
    """A bookable slot for one doctor on one date.

    Rows are created by the generator in the ``available`` state and only
    change status afterwards; (doctor_id, appointment_date, start_time) is
    unique so overlapping generation runs cannot duplicate a slot.
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    doctor_schedule_id = Column(Integer, ForeignKey("doctor_schedules.id"), nullable=False, index=True)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    appointment_datetime = Column(DateTime, nullable=False, index=True)
    expire_at = Column(DateTime, nullable=False)
    capacity = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default=AppointmentStatus.AVAILABLE.value)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, onupdate=datetime.now)

    __table_args__ = (
        Index(
            "uq_appointments_doctor_date_start",
            "doctor_id",
            "appointment_date",
            "start_time",
            unique=True,
        ),
        Index("idx_appointments_status", "status"),
    )
