import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import require_admin
from clinic_scheduler.database import get_db
from clinic_scheduler.models.holiday import Holiday
from clinic_scheduler.models.user import User
from clinic_scheduler.routes.common import (
    conflict,
    database_unavailable,
    get_or_404,
    normalize_optional_text,
    normalize_required_text,
)

router = APIRouter(tags=['holidays'])

logger = logging.getLogger(__name__)

MAX_HOLIDAY_NAME_LENGTH = 200
MAX_HOLIDAY_DESCRIPTION_LENGTH = 500


class HolidayRequest(BaseModel):
    date: date
    name: str
    description: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_required_text(value, 'Holiday name', MAX_HOLIDAY_NAME_LENGTH)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return normalize_optional_text(value, 'Description', MAX_HOLIDAY_DESCRIPTION_LENGTH)


class HolidayResponse(BaseModel):
    id: int
    date: date
    name: str
    description: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


def get_holiday_or_404(db: Session, holiday_id: int) -> Holiday:
    return get_or_404(db, Holiday, holiday_id, 'Holiday')


def commit_holiday(db: Session, holiday: Holiday) -> Holiday:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict('A holiday already exists on this date.') from exc
    db.refresh(holiday)
    return holiday


@router.get('', response_model=list[HolidayResponse])
def list_holidays(
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Holiday)
        if from_date is not None:
            query = query.filter(Holiday.date >= from_date)
        if to_date is not None:
            query = query.filter(Holiday.date <= to_date)
        return query.order_by(Holiday.date.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{holiday_id}', response_model=HolidayResponse)
def get_holiday(holiday_id: int, db: Session = Depends(get_db)):
    try:
        return get_holiday_or_404(db, holiday_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
def create_holiday(
    data: HolidayRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        holiday = Holiday(date=data.date, name=data.name, description=data.description)
        db.add(holiday)
        holiday = commit_holiday(db, holiday)
        logger.info('Holiday %s created for %s', holiday.id, holiday.date)
        return holiday
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/{holiday_id}', response_model=HolidayResponse)
def update_holiday(
    holiday_id: int,
    data: HolidayRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        holiday = get_holiday_or_404(db, holiday_id)
        holiday.date = data.date
        holiday.name = data.name
        holiday.description = data.description
        holiday = commit_holiday(db, holiday)
        logger.info('Holiday %s updated', holiday.id)
        return holiday
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{holiday_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_holiday(
    holiday_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        holiday = get_holiday_or_404(db, holiday_id)
        db.delete(holiday)
        db.commit()
        logger.info('Holiday %s deleted', holiday_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
