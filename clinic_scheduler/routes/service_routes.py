import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import require_admin
from clinic_scheduler.database import get_db
from clinic_scheduler.models.doctor_schedule import DoctorSchedule
from clinic_scheduler.models.service import Service, ServiceTariff
from clinic_scheduler.models.user import User
from clinic_scheduler.routes.common import (
    conflict,
    database_unavailable,
    get_or_404,
    normalize_optional_text,
    normalize_required_text,
)

router = APIRouter(tags=['services'])

logger = logging.getLogger(__name__)

MAX_SERVICE_NAME_LENGTH = 200
MAX_SERVICE_DESCRIPTION_LENGTH = 500


class ServiceRequest(BaseModel):
    name: str
    description: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_required_text(value, 'Service name', MAX_SERVICE_NAME_LENGTH)

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        return normalize_optional_text(value, 'Description', MAX_SERVICE_DESCRIPTION_LENGTH)


class ServiceResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


@router.get('', response_model=list[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    try:
        return db.query(Service).order_by(Service.name.asc(), Service.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{service_id}', response_model=ServiceResponse)
def get_service(service_id: int, db: Session = Depends(get_db)):
    try:
        return get_or_404(db, Service, service_id, 'Service')
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        service = Service(name=data.name, description=data.description)
        db.add(service)
        db.commit()
        db.refresh(service)
        logger.info('Service %s created', service.id)
        return service
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/{service_id}', response_model=ServiceResponse)
def update_service(
    service_id: int,
    data: ServiceRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        service = get_or_404(db, Service, service_id, 'Service')
        service.name = data.name
        service.description = data.description
        db.commit()
        db.refresh(service)
        logger.info('Service %s updated', service.id)
        return service
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{service_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_service(
    service_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        service = get_or_404(db, Service, service_id, 'Service')

        in_use = (
            db.query(DoctorSchedule.id).filter(DoctorSchedule.service_id == service.id).first()
            or db.query(ServiceTariff.id).filter(ServiceTariff.service_id == service.id).first()
        )
        if in_use:
            raise conflict('This service is used by schedules or tariffs and cannot be deleted.')

        db.delete(service)
        db.commit()
        logger.info('Service %s deleted', service_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
