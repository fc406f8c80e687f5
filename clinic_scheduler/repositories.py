"""Persistence helpers used by the appointment services.

Each function takes the caller's Session; none of them commit. The caller
decides transaction boundaries.
"""

from datetime import date, time

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.doctor_schedule import DoctorSchedule
from clinic_scheduler.models.holiday import Holiday
from clinic_scheduler.models.service import ServiceTariff

INSERT_CHUNK_SIZE = 200

_CONFLICT_AWARE_INSERTS = {
    'sqlite': sqlite.insert,
    'postgresql': postgresql.insert,
}


def list_active_templates(db: Session) -> list[DoctorSchedule]:
    return db.query(DoctorSchedule).join(Doctor, Doctor.id == DoctorSchedule.doctor_id).options(
        joinedload(DoctorSchedule.clinic),
    ).filter(
        Doctor.is_active.is_(True),
    ).order_by(
        DoctorSchedule.doctor_id.asc(),
        DoctorSchedule.start_time.asc(),
        DoctorSchedule.id.asc(),
    ).all()


def list_holidays(db: Session, start_date: date, end_date: date) -> list[date]:
    rows = db.query(Holiday.date).filter(
        Holiday.date >= start_date,
        Holiday.date < end_date,
    ).all()
    return [holiday_date for (holiday_date,) in rows]


def existing_slot_keys(db: Session, start_date: date, end_date: date) -> set[tuple[int, date, time]]:
    rows = db.query(Appointment.doctor_id, Appointment.appointment_date, Appointment.start_time).filter(
        Appointment.appointment_date >= start_date,
        Appointment.appointment_date < end_date,
    ).all()
    return {(doctor_id, appointment_date, start_time) for doctor_id, appointment_date, start_time in rows}


def slot_exists(db: Session, doctor_id: int, slot_date: date, start_time: time) -> bool:
    return db.query(Appointment.id).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == slot_date,
        Appointment.start_time == start_time,
    ).first() is not None


def tariff_exists(db: Session, doctor_id: int, clinic_id: int | None, service_id: int) -> bool:
    query = db.query(ServiceTariff.id).filter(ServiceTariff.service_id == service_id)

    if clinic_id is not None:
        # Either a doctor-specific tariff or a clinic-wide one.
        query = query.filter(
            ServiceTariff.clinic_id == clinic_id,
            (ServiceTariff.doctor_id == doctor_id) | (ServiceTariff.doctor_id.is_(None)),
        )
    else:
        query = query.filter(ServiceTariff.doctor_id == doctor_id)

    return query.first() is not None


def tariff_visit_duration(db: Session, doctor_id: int, clinic_id: int | None, service_id: int) -> int | None:
    """Visit length in minutes set on the matching tariff, if any.

    A doctor-specific tariff wins over the clinic-wide one.
    """
    query = db.query(ServiceTariff.visit_duration).filter(
        ServiceTariff.service_id == service_id,
        ServiceTariff.visit_duration.is_not(None),
    )

    if clinic_id is None:
        row = query.filter(ServiceTariff.doctor_id == doctor_id).order_by(ServiceTariff.id.asc()).first()
        return row[0] if row else None

    query = query.filter(ServiceTariff.clinic_id == clinic_id)
    row = query.filter(ServiceTariff.doctor_id == doctor_id).order_by(ServiceTariff.id.asc()).first()
    if row is None:
        row = query.filter(ServiceTariff.doctor_id.is_(None)).order_by(ServiceTariff.id.asc()).first()
    return row[0] if row else None


def insert_slots(db: Session, rows: list[dict]) -> int:
    """Insert appointment rows, skipping any that collide with an existing slot.

    Returns the number of rows actually inserted.
    """
    if not rows:
        return 0

    dialect_insert = _CONFLICT_AWARE_INSERTS.get(db.get_bind().dialect.name)
    if dialect_insert is None:
        return _insert_slots_individually(db, rows)

    inserted = 0
    for offset in range(0, len(rows), INSERT_CHUNK_SIZE):
        chunk = rows[offset:offset + INSERT_CHUNK_SIZE]
        statement = dialect_insert(Appointment.__table__).values(chunk).on_conflict_do_nothing()
        result = db.execute(statement)
        inserted += max(result.rowcount, 0)

    return inserted


def _insert_slots_individually(db: Session, rows: list[dict]) -> int:
    inserted = 0
    for row in rows:
        try:
            with db.begin_nested():
                db.execute(insert(Appointment.__table__).values(**row))
        except IntegrityError:
            # Only a slot stored under the same key counts as a duplicate.
            if slot_exists(db, row['doctor_id'], row['appointment_date'], row['start_time']):
                continue
            raise
        inserted += 1
    return inserted
