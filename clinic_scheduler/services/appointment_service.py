"""Queries and status changes on generated appointment slots."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_scheduler import repositories
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.doctor_schedule import DoctorSchedule
from clinic_scheduler.models.enums import ALLOWED_STATUS_TRANSITIONS, AppointmentStatus

logger = logging.getLogger(__name__)


class AppointmentNotFoundError(LookupError):
    pass


class ScheduleNotFoundError(LookupError):
    pass


class DuplicateAppointmentError(ValueError):
    pass


class InvalidStatusTransition(ValueError):
    def __init__(self, current: AppointmentStatus, target: AppointmentStatus):
        super().__init__(f'Cannot change appointment status from {current.value} to {target.value}.')
        self.current = current
        self.target = target


@dataclass
class AppointmentCount:
    date: date
    total_count: int
    booked_count: int
    available_count: int


def count_appointments(db: Session, doctor_id: int, start_date: date, end_date: date) -> list[AppointmentCount]:
    """Per-date slot totals for a doctor, ``start_date`` and ``end_date`` inclusive."""
    rows = db.query(
        Appointment.appointment_date,
        func.count(Appointment.id),
        func.sum(case((Appointment.status == AppointmentStatus.BOOKED.value, 1), else_=0)),
        func.sum(case((Appointment.status == AppointmentStatus.AVAILABLE.value, 1), else_=0)),
    ).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date >= start_date,
        Appointment.appointment_date <= end_date,
    ).group_by(
        Appointment.appointment_date,
    ).order_by(
        Appointment.appointment_date.asc(),
    ).all()

    return [
        AppointmentCount(
            date=appointment_date,
            total_count=total,
            booked_count=int(booked or 0),
            available_count=int(available or 0),
        )
        for appointment_date, total, booked, available in rows
    ]


def list_appointments(
    db: Session,
    doctor_id: int | None = None,
    appointment_date: date | None = None,
    status: AppointmentStatus | None = None,
) -> list[Appointment]:
    query = db.query(Appointment)
    if doctor_id is not None:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if appointment_date is not None:
        query = query.filter(Appointment.appointment_date == appointment_date)
    if status is not None:
        query = query.filter(Appointment.status == status.value)

    return query.order_by(Appointment.appointment_datetime.asc(), Appointment.doctor_id.asc()).all()


def create_appointment(
    db: Session,
    doctor_schedule_id: int,
    appointment_date: date,
    start_time: time,
    end_time: time,
) -> Appointment:
    """Create a single slot outside the generator, e.g. an extra visit."""
    schedule = db.get(DoctorSchedule, doctor_schedule_id)
    if schedule is None:
        raise ScheduleNotFoundError(f'Doctor schedule {doctor_schedule_id} not found.')

    if start_time >= end_time:
        raise ValueError('Start time must be before end time.')

    if repositories.slot_exists(db, schedule.doctor_id, appointment_date, start_time):
        raise DuplicateAppointmentError('An appointment already exists at this time.')

    appointment = Appointment(
        doctor_id=schedule.doctor_id,
        doctor_schedule_id=schedule.id,
        appointment_date=appointment_date,
        start_time=start_time,
        end_time=end_time,
        appointment_datetime=datetime.combine(appointment_date, start_time),
        expire_at=datetime.combine(appointment_date, end_time),
        capacity=schedule.capacity,
        status=AppointmentStatus.AVAILABLE.value,
    )
    db.add(appointment)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateAppointmentError('An appointment already exists at this time.') from exc

    db.refresh(appointment)
    logger.info(
        'Appointment %s created for schedule %s on %s at %s',
        appointment.id, schedule.id, appointment_date, start_time,
    )
    return appointment


def change_status(db: Session, appointment_id: int, target: AppointmentStatus) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError(f'Appointment {appointment_id} not found.')

    current = AppointmentStatus(appointment.status)
    if target not in ALLOWED_STATUS_TRANSITIONS[current]:
        raise InvalidStatusTransition(current, target)

    appointment.status = target.value
    db.commit()
    db.refresh(appointment)

    logger.info('Appointment %s moved from %s to %s', appointment.id, current.value, target.value)
    return appointment
