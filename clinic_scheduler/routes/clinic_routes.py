import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import require_admin
from clinic_scheduler.database import get_db
from clinic_scheduler.models.clinic import Clinic
from clinic_scheduler.models.doctor_schedule import DoctorSchedule
from clinic_scheduler.models.service import ServiceTariff
from clinic_scheduler.models.user import User
from clinic_scheduler.routes.common import (
    conflict,
    database_unavailable,
    get_or_404,
    normalize_optional_text,
    normalize_required_text,
)

router = APIRouter(tags=['clinics'])

logger = logging.getLogger(__name__)

MAX_CLINIC_NAME_LENGTH = 200
MAX_ADDRESS_LENGTH = 500
MAX_PHONE_LENGTH = 50


class ClinicRequest(BaseModel):
    name: str
    address: str | None = None
    phone: str | None = None
    is_active: bool = True
    # Null means slots may be generated arbitrarily far ahead.
    appointment_generation_days: int | None = Field(default=None, ge=1)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_required_text(value, 'Clinic name', MAX_CLINIC_NAME_LENGTH)

    @field_validator('address')
    @classmethod
    def validate_address(cls, value: str | None) -> str | None:
        return normalize_optional_text(value, 'Address', MAX_ADDRESS_LENGTH)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        return normalize_optional_text(value, 'Phone', MAX_PHONE_LENGTH)


class ClinicResponse(BaseModel):
    id: int
    name: str
    address: str | None = None
    phone: str | None = None
    is_active: bool
    appointment_generation_days: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


@router.get('', response_model=list[ClinicResponse])
def list_clinics(
    is_active: bool | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Clinic)
        if is_active is not None:
            query = query.filter(Clinic.is_active.is_(is_active))
        return query.order_by(Clinic.name.asc(), Clinic.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{clinic_id}', response_model=ClinicResponse)
def get_clinic(clinic_id: int, db: Session = Depends(get_db)):
    try:
        return get_or_404(db, Clinic, clinic_id, 'Clinic')
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=ClinicResponse, status_code=status.HTTP_201_CREATED)
def create_clinic(
    data: ClinicRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        clinic = Clinic(**data.model_dump())
        db.add(clinic)
        db.commit()
        db.refresh(clinic)
        logger.info('Clinic %s created', clinic.id)
        return clinic
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/{clinic_id}', response_model=ClinicResponse)
def update_clinic(
    clinic_id: int,
    data: ClinicRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        clinic = get_or_404(db, Clinic, clinic_id, 'Clinic')
        for field_name, value in data.model_dump().items():
            setattr(clinic, field_name, value)
        db.commit()
        db.refresh(clinic)
        logger.info('Clinic %s updated (generation days: %s)', clinic.id, clinic.appointment_generation_days)
        return clinic
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{clinic_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_clinic(
    clinic_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        clinic = get_or_404(db, Clinic, clinic_id, 'Clinic')

        in_use = (
            db.query(DoctorSchedule.id).filter(DoctorSchedule.clinic_id == clinic.id).first()
            or db.query(ServiceTariff.id).filter(ServiceTariff.clinic_id == clinic.id).first()
        )
        if in_use:
            raise conflict('This clinic is used by schedules or tariffs and cannot be deleted.')

        db.delete(clinic)
        db.commit()
        logger.info('Clinic %s deleted', clinic_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
