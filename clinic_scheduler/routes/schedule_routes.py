import logging
from datetime import time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import require_admin
from clinic_scheduler.database import get_db
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.clinic import Clinic
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.doctor_schedule import DoctorSchedule
from clinic_scheduler.models.enums import DayOfWeek
from clinic_scheduler.models.service import Service
from clinic_scheduler.models.shift import Shift
from clinic_scheduler.models.user import User
from clinic_scheduler.routes.common import database_unavailable

router = APIRouter(tags=['doctor-schedules'])

logger = logging.getLogger(__name__)

MAX_SLOT_DURATION_MINUTES = 24 * 60


class DoctorScheduleRequest(BaseModel):
    doctor_id: int
    service_id: int
    day_of_week: DayOfWeek
    slot_duration_minutes: int = Field(gt=0, le=MAX_SLOT_DURATION_MINUTES)
    capacity: int = Field(default=1, ge=1)
    shift_id: int | None = None
    clinic_id: int | None = None
    start_time: time | None = None
    end_time: time | None = None

    @model_validator(mode='after')
    def validate_time_window(self) -> 'DoctorScheduleRequest':
        if self.shift_id is None and (self.start_time is None or self.end_time is None):
            raise ValueError('Start and end times are required when no shift is selected.')
        if self.start_time is not None and self.end_time is not None and self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class DoctorScheduleResponse(BaseModel):
    id: int
    doctor_id: int
    service_id: int
    day_of_week: DayOfWeek
    day_name: str
    start_time: time
    end_time: time
    slot_duration_minutes: int
    capacity: int
    shift_id: int | None = None
    clinic_id: int | None = None


def to_response(schedule: DoctorSchedule) -> DoctorScheduleResponse:
    day_of_week = DayOfWeek(schedule.day_of_week)
    return DoctorScheduleResponse(
        id=schedule.id,
        doctor_id=schedule.doctor_id,
        service_id=schedule.service_id,
        day_of_week=day_of_week,
        day_name=day_of_week.label,
        start_time=schedule.start_time,
        end_time=schedule.end_time,
        slot_duration_minutes=schedule.slot_duration_minutes,
        capacity=schedule.capacity,
        shift_id=schedule.shift_id,
        clinic_id=schedule.clinic_id,
    )


def get_schedule_or_404(db: Session, schedule_id: int) -> DoctorSchedule:
    schedule = db.get(DoctorSchedule, schedule_id)
    if schedule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor schedule not found.',
        )
    return schedule


def resolve_schedule_fields(data: DoctorScheduleRequest, db: Session) -> dict:
    """Check references and fill the time window from the shift when omitted."""
    if db.get(Doctor, data.doctor_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Doctor not found.')

    if db.get(Service, data.service_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Service not found.')

    if data.clinic_id is not None and db.get(Clinic, data.clinic_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Clinic not found.')

    start_time = data.start_time
    end_time = data.end_time
    if data.shift_id is not None:
        shift = db.get(Shift, data.shift_id)
        if shift is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Shift not found.')
        start_time = start_time or shift.start_time
        end_time = end_time or shift.end_time

    if start_time >= end_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Start time must be before end time.',
        )

    return {
        'doctor_id': data.doctor_id,
        'service_id': data.service_id,
        'day_of_week': int(data.day_of_week),
        'slot_duration_minutes': data.slot_duration_minutes,
        'capacity': data.capacity,
        'shift_id': data.shift_id,
        'clinic_id': data.clinic_id,
        'start_time': start_time,
        'end_time': end_time,
    }


@router.get('', response_model=list[DoctorScheduleResponse])
def list_doctor_schedules(
    doctor_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(DoctorSchedule)
        if doctor_id is not None:
            query = query.filter(DoctorSchedule.doctor_id == doctor_id)
        schedules = query.order_by(
            DoctorSchedule.doctor_id.asc(),
            DoctorSchedule.day_of_week.asc(),
            DoctorSchedule.start_time.asc(),
        ).all()
        return [to_response(schedule) for schedule in schedules]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{schedule_id}', response_model=DoctorScheduleResponse)
def get_doctor_schedule(schedule_id: int, db: Session = Depends(get_db)):
    try:
        return to_response(get_schedule_or_404(db, schedule_id))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=DoctorScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_doctor_schedule(
    data: DoctorScheduleRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        schedule = DoctorSchedule(**resolve_schedule_fields(data, db))
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        logger.info('Doctor schedule %s created for doctor %s', schedule.id, schedule.doctor_id)
        return to_response(schedule)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/{schedule_id}', response_model=DoctorScheduleResponse)
def update_doctor_schedule(
    schedule_id: int,
    data: DoctorScheduleRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        schedule = get_schedule_or_404(db, schedule_id)
        for field_name, value in resolve_schedule_fields(data, db).items():
            setattr(schedule, field_name, value)
        db.commit()
        db.refresh(schedule)
        logger.info('Doctor schedule %s updated', schedule.id)
        return to_response(schedule)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{schedule_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_doctor_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        schedule = get_schedule_or_404(db, schedule_id)

        has_appointments = db.query(Appointment.id).filter(
            Appointment.doctor_schedule_id == schedule.id,
        ).first()
        if has_appointments:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This schedule already has appointments and cannot be deleted.',
            )

        db.delete(schedule)
        db.commit()
        logger.info('Doctor schedule %s deleted', schedule_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
