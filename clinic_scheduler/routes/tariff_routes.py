import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import require_admin
from clinic_scheduler.database import get_db
from clinic_scheduler.models.clinic import Clinic
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.service import Service, ServiceTariff
from clinic_scheduler.models.user import User
from clinic_scheduler.routes.common import conflict, database_unavailable, get_or_404

router = APIRouter(tags=['service-tariffs'])

logger = logging.getLogger(__name__)

MAX_VISIT_DURATION_MINUTES = 24 * 60


class ServiceTariffRequest(BaseModel):
    service_id: int
    clinic_id: int
    doctor_id: int | None = None
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    # When set, generated slots for matching schedules use this length.
    visit_duration: int | None = Field(default=None, gt=0, le=MAX_VISIT_DURATION_MINUTES)


class ServiceTariffResponse(BaseModel):
    id: int
    service_id: int
    clinic_id: int
    doctor_id: int | None = None
    price: Decimal
    visit_duration: int | None = None

    class Config:
        from_attributes = True


def check_tariff_references(data: ServiceTariffRequest, db: Session) -> None:
    get_or_404(db, Service, data.service_id, 'Service')
    get_or_404(db, Clinic, data.clinic_id, 'Clinic')
    if data.doctor_id is not None:
        get_or_404(db, Doctor, data.doctor_id, 'Doctor')


def ensure_tariff_is_unique(data: ServiceTariffRequest, db: Session, tariff_id: int | None = None) -> None:
    query = db.query(ServiceTariff.id).filter(
        ServiceTariff.service_id == data.service_id,
        ServiceTariff.clinic_id == data.clinic_id,
    )
    if data.doctor_id is None:
        query = query.filter(ServiceTariff.doctor_id.is_(None))
    else:
        query = query.filter(ServiceTariff.doctor_id == data.doctor_id)
    if tariff_id is not None:
        query = query.filter(ServiceTariff.id != tariff_id)

    if query.first() is not None:
        raise conflict('A tariff already exists for this service, clinic and doctor.')


@router.get('', response_model=list[ServiceTariffResponse])
def list_tariffs(
    service_id: int | None = Query(default=None),
    clinic_id: int | None = Query(default=None),
    doctor_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(ServiceTariff)
        if service_id is not None:
            query = query.filter(ServiceTariff.service_id == service_id)
        if clinic_id is not None:
            query = query.filter(ServiceTariff.clinic_id == clinic_id)
        if doctor_id is not None:
            query = query.filter(ServiceTariff.doctor_id == doctor_id)
        return query.order_by(ServiceTariff.service_id.asc(), ServiceTariff.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{tariff_id}', response_model=ServiceTariffResponse)
def get_tariff(tariff_id: int, db: Session = Depends(get_db)):
    try:
        return get_or_404(db, ServiceTariff, tariff_id, 'Service tariff')
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=ServiceTariffResponse, status_code=status.HTTP_201_CREATED)
def create_tariff(
    data: ServiceTariffRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        check_tariff_references(data, db)
        ensure_tariff_is_unique(data, db)

        tariff = ServiceTariff(**data.model_dump())
        db.add(tariff)
        db.commit()
        db.refresh(tariff)
        logger.info(
            'Tariff %s created for service %s at clinic %s (doctor %s)',
            tariff.id, tariff.service_id, tariff.clinic_id, tariff.doctor_id,
        )
        return tariff
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/{tariff_id}', response_model=ServiceTariffResponse)
def update_tariff(
    tariff_id: int,
    data: ServiceTariffRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        tariff = get_or_404(db, ServiceTariff, tariff_id, 'Service tariff')
        check_tariff_references(data, db)
        ensure_tariff_is_unique(data, db, tariff_id=tariff.id)

        for field_name, value in data.model_dump().items():
            setattr(tariff, field_name, value)
        db.commit()
        db.refresh(tariff)
        logger.info('Tariff %s updated', tariff.id)
        return tariff
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{tariff_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_tariff(
    tariff_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    del current_user
    try:
        tariff = get_or_404(db, ServiceTariff, tariff_id, 'Service tariff')
        db.delete(tariff)
        db.commit()
        logger.info('Tariff %s deleted', tariff_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
