import logging
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import get_current_user, require_admin
from clinic_scheduler.core import config
from clinic_scheduler.database import get_db
from clinic_scheduler.models.enums import AppointmentStatus
from clinic_scheduler.models.user import User
from clinic_scheduler.routes.common import database_unavailable, ensure_database_ready
from clinic_scheduler.services import appointment_service
from clinic_scheduler.services.appointment_generation import (
    AppointmentGenerationError,
    generate_appointments as run_generation,
)

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)


class GenerateAppointmentsResponse(BaseModel):
    start_date: date
    end_date: date
    created: int
    skipped_existing: int
    skipped_templates: int
    message: str


class AppointmentCountResponse(BaseModel):
    date: date
    total_count: int
    booked_count: int
    available_count: int


class CreateAppointmentRequest(BaseModel):
    doctor_schedule_id: int
    appointment_date: date
    start_time: time
    end_time: time

    @model_validator(mode='after')
    def validate_time_range(self) -> 'CreateAppointmentRequest':
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    doctor_schedule_id: int
    appointment_date: date
    start_time: time
    end_time: time
    appointment_datetime: datetime
    expire_at: datetime
    capacity: int
    status: AppointmentStatus

    class Config:
        from_attributes = True


def resolve_generation_window(start_date: date | None, end_date: date | None) -> tuple[date, date]:
    start = start_date or date.today()
    end = end_date or start + timedelta(days=config.APPOINTMENT_GENERATION_DAYS_AHEAD)

    if start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Start date cannot be after end date.',
        )

    if (end - start).days > config.MAX_GENERATION_WINDOW_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Appointments can be generated for at most {config.MAX_GENERATION_WINDOW_DAYS} days at once.',
        )

    return start, end


@router.post('/generate', response_model=GenerateAppointmentsResponse)
def generate_appointments(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    start, end = resolve_generation_window(start_date, end_date)

    ensure_database_ready()

    logger.info('Manual appointment generation requested by %s for %s to %s', current_user.email, start, end)
    try:
        result = run_generation(db, start, end)
    except AppointmentGenerationError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f'{exc} {exc.created} appointments were created before the failure.',
        ) from exc

    return GenerateAppointmentsResponse(
        start_date=result.start_date,
        end_date=result.end_date,
        created=result.created,
        skipped_existing=result.skipped_existing,
        skipped_templates=result.skipped_templates,
        message=f'{result.created} appointments created.',
    )


@router.get('/counts', response_model=list[AppointmentCountResponse])
def get_appointment_counts(
    doctor_id: int = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Start date cannot be after end date.',
        )

    ensure_database_ready()

    try:
        counts = appointment_service.count_appointments(db, doctor_id, start_date, end_date)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [
        AppointmentCountResponse(
            date=count.date,
            total_count=count.total_count,
            booked_count=count.booked_count,
            available_count=count.available_count,
        )
        for count in counts
    ]


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    doctor_id: int | None = Query(default=None),
    appointment_date: date | None = Query(default=None),
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    ensure_database_ready()

    try:
        return appointment_service.list_appointments(db, doctor_id, appointment_date, appointment_status)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    ensure_database_ready()

    try:
        return appointment_service.create_appointment(
            db,
            doctor_schedule_id=data.doctor_schedule_id,
            appointment_date=data.appointment_date,
            start_time=data.start_time,
            end_time=data.end_time,
        )
    except appointment_service.ScheduleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Doctor schedule not found.') from exc
    except appointment_service.DuplicateAppointmentError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


def _transition(db: Session, appointment_id: int, target: AppointmentStatus, current_user: User):
    ensure_database_ready()

    try:
        appointment = appointment_service.change_status(db, appointment_id, target)
    except appointment_service.AppointmentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found.') from exc
    except appointment_service.InvalidStatusTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Appointment %s marked %s by %s', appointment_id, target.value, current_user.email)
    return appointment


@router.post('/{appointment_id}/book', response_model=AppointmentResponse)
def book_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _transition(db, appointment_id, AppointmentStatus.BOOKED, current_user)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _transition(db, appointment_id, AppointmentStatus.CANCELLED, current_user)


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return _transition(db, appointment_id, AppointmentStatus.COMPLETED, current_user)
