import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import require_admin
from clinic_scheduler.database import get_db
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.doctor_schedule import DoctorSchedule
from clinic_scheduler.models.user import User
from clinic_scheduler.routes.common import (
    conflict,
    database_unavailable,
    get_or_404,
    normalize_optional_text,
    normalize_required_text,
)

router = APIRouter(tags=['doctors'])

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_MEDICAL_CODE_LENGTH = 50


class DoctorRequest(BaseModel):
    first_name: str
    last_name: str
    medical_code: str | None = None
    is_active: bool = True

    @field_validator('first_name')
    @classmethod
    def validate_first_name(cls, value: str) -> str:
        return normalize_required_text(value, 'First name', MAX_NAME_LENGTH)

    @field_validator('last_name')
    @classmethod
    def validate_last_name(cls, value: str) -> str:
        return normalize_required_text(value, 'Last name', MAX_NAME_LENGTH)

    @field_validator('medical_code')
    @classmethod
    def validate_medical_code(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value, 'Medical code', MAX_MEDICAL_CODE_LENGTH)
        return normalized.upper() if normalized else None


class DoctorResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    full_name: str
    medical_code: str | None = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


def commit_doctor(db: Session, doctor: Doctor) -> Doctor:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict('A doctor with this medical code already exists.') from exc
    db.refresh(doctor)
    return doctor


@router.get('', response_model=list[DoctorResponse])
def list_doctors(
    is_active: bool | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Doctor)
        if is_active is not None:
            query = query.filter(Doctor.is_active.is_(is_active))
        return query.order_by(Doctor.last_name.asc(), Doctor.first_name.asc(), Doctor.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    try:
        return get_or_404(db, Doctor, doctor_id, 'Doctor')
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def create_doctor(
    data: DoctorRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        doctor = Doctor(**data.model_dump())
        db.add(doctor)
        doctor = commit_doctor(db, doctor)
        logger.info('Doctor %s created', doctor.id)
        return doctor
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/{doctor_id}', response_model=DoctorResponse)
def update_doctor(
    doctor_id: int,
    data: DoctorRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        doctor = get_or_404(db, Doctor, doctor_id, 'Doctor')
        for field_name, value in data.model_dump().items():
            setattr(doctor, field_name, value)
        doctor = commit_doctor(db, doctor)
        # Deactivated doctors keep their slots; generation just stops adding new ones.
        logger.info('Doctor %s updated (active=%s)', doctor.id, doctor.is_active)
        return doctor
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{doctor_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        doctor = get_or_404(db, Doctor, doctor_id, 'Doctor')

        has_appointments = db.query(Appointment.id).filter(Appointment.doctor_id == doctor.id).first()
        if has_appointments:
            raise conflict('This doctor already has appointments; deactivate the doctor instead.')

        db.query(DoctorSchedule).filter(DoctorSchedule.doctor_id == doctor.id).delete(synchronize_session=False)
        db.delete(doctor)
        db.commit()
        logger.info('Doctor %s deleted', doctor_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
