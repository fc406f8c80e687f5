import logging
from datetime import time

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import require_admin
from clinic_scheduler.database import get_db
from clinic_scheduler.models.doctor_schedule import DoctorSchedule
from clinic_scheduler.models.shift import Shift
from clinic_scheduler.models.user import User
from clinic_scheduler.routes.common import (
    conflict,
    database_unavailable,
    get_or_404,
    normalize_optional_text,
    normalize_required_text,
)

router = APIRouter(tags=['shifts'])

logger = logging.getLogger(__name__)

MAX_SHIFT_NAME_LENGTH = 100
MAX_SHIFT_DESCRIPTION_LENGTH = 500


class ShiftRequest(BaseModel):
    name: str
    start_time: time
    end_time: time
    description: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_required_text(value, 'Shift name', MAX_SHIFT_NAME_LENGTH)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return normalize_optional_text(value, 'Description', MAX_SHIFT_DESCRIPTION_LENGTH)

    @model_validator(mode='after')
    def validate_time_range(self) -> 'ShiftRequest':
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class ShiftResponse(BaseModel):
    id: int
    name: str
    start_time: time
    end_time: time
    description: str | None = None

    class Config:
        from_attributes = True


@router.get('', response_model=list[ShiftResponse])
def list_shifts(db: Session = Depends(get_db)):
    try:
        return db.query(Shift).order_by(Shift.start_time.asc(), Shift.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{shift_id}', response_model=ShiftResponse)
def get_shift(shift_id: int, db: Session = Depends(get_db)):
    try:
        return get_or_404(db, Shift, shift_id, 'Shift')
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
def create_shift(
    data: ShiftRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        shift = Shift(**data.model_dump())
        db.add(shift)
        db.commit()
        db.refresh(shift)
        logger.info('Shift %s created', shift.id)
        return shift
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/{shift_id}', response_model=ShiftResponse)
def update_shift(
    shift_id: int,
    data: ShiftRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Rename or retime a shift.

    Schedules copied their times when they were created, so existing
    schedules keep their own window.
    """
    del current_user
    try:
        shift = get_or_404(db, Shift, shift_id, 'Shift')
        for field_name, value in data.model_dump().items():
            setattr(shift, field_name, value)
        db.commit()
        db.refresh(shift)
        logger.info('Shift %s updated', shift.id)
        return shift
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{shift_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_shift(
    shift_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        shift = get_or_404(db, Shift, shift_id, 'Shift')

        if db.query(DoctorSchedule.id).filter(DoctorSchedule.shift_id == shift.id).first():
            raise conflict('This shift is used by doctor schedules and cannot be deleted.')

        db.delete(shift)
        db.commit()
        logger.info('Shift %s deleted', shift_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
