"""Medical service and tariff model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from clinic_scheduler.database import Base


class Service(Base):
    """Represents a service offered during a doctor's shift."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(String(500))
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class ServiceTariff(Base):
    """Price of a service at a clinic, optionally specific to one doctor."""
    __tablename__ = "service_tariffs"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=True, index=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    visit_duration = Column(Integer, nullable=True)  # minutes
