import os
from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('APPOINTMENT_GENERATION_ENABLED', 'false')

from clinic_scheduler.database import Base  # noqa: E402
from clinic_scheduler.models.appointment import Appointment  # noqa: E402,F401
from clinic_scheduler.models.clinic import Clinic  # noqa: E402
from clinic_scheduler.models.doctor import Doctor  # noqa: E402
from clinic_scheduler.models.doctor_schedule import DoctorSchedule  # noqa: E402
from clinic_scheduler.models.holiday import Holiday  # noqa: E402,F401
from clinic_scheduler.models.service import Service, ServiceTariff  # noqa: E402,F401
from clinic_scheduler.models.shift import Shift  # noqa: E402,F401
from clinic_scheduler.models.user import ADMIN_ROLE, STAFF_ROLE, User  # noqa: E402


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'clinic.db'}",
        connect_args={'check_same_thread': False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def service(db):
    service = Service(name='General visit')
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def make_doctor(db):
    def _make_doctor(first_name='Sara', last_name='Ahmadi', is_active=True) -> Doctor:
        doctor = Doctor(first_name=first_name, last_name=last_name, is_active=is_active)
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def make_clinic(db):
    def _make_clinic(name='Central Clinic', appointment_generation_days=None) -> Clinic:
        clinic = Clinic(name=name, appointment_generation_days=appointment_generation_days)
        db.add(clinic)
        db.commit()
        db.refresh(clinic)
        return clinic

    return _make_clinic


@pytest.fixture
def make_schedule(db, service):
    def _make_schedule(
        doctor,
        day_of_week,
        start_time=time(8, 0),
        end_time=time(12, 0),
        slot_duration_minutes=30,
        capacity=1,
        clinic=None,
    ) -> DoctorSchedule:
        schedule = DoctorSchedule(
            doctor_id=doctor.id,
            service_id=service.id,
            day_of_week=int(day_of_week),
            start_time=start_time,
            end_time=end_time,
            slot_duration_minutes=slot_duration_minutes,
            capacity=capacity,
            clinic_id=clinic.id if clinic is not None else None,
        )
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        return schedule

    return _make_schedule


@pytest.fixture
def admin_user(db):
    user = User(email='admin@clinic.test', role=ADMIN_ROLE)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def staff_user(db):
    user = User(email='staff@clinic.test', role=STAFF_ROLE)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
