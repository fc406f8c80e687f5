from datetime import date, time, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from clinic_scheduler.models.enums import DayOfWeek
from clinic_scheduler.models.shift import Shift
from clinic_scheduler.routes.schedule_routes import (
    DoctorScheduleRequest,
    create_doctor_schedule,
    delete_doctor_schedule,
    get_doctor_schedule,
    list_doctor_schedules,
    update_doctor_schedule,
)
from clinic_scheduler.services.appointment_generation import generate_appointments


def _request(doctor_id: int, service_id: int, **overrides) -> DoctorScheduleRequest:
    values = {
        'doctor_id': doctor_id,
        'service_id': service_id,
        'day_of_week': DayOfWeek.MONDAY,
        'slot_duration_minutes': 20,
        'start_time': time(9, 0),
        'end_time': time(12, 0),
    }
    values.update(overrides)
    return DoctorScheduleRequest(**values)


def test_schedule_request_requires_times_without_shift() -> None:
    with pytest.raises(ValidationError):
        DoctorScheduleRequest(doctor_id=1, service_id=1, day_of_week=DayOfWeek.MONDAY, slot_duration_minutes=15)


@pytest.mark.parametrize(
    'overrides',
    [
        {'start_time': time(12, 0), 'end_time': time(9, 0)},
        {'slot_duration_minutes': 0},
        {'capacity': 0},
        {'day_of_week': 7},
    ],
)
def test_schedule_request_rejects_invalid_values(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        _request(1, 1, **overrides)


def test_create_schedule_returns_day_name(db, make_doctor, service, admin_user) -> None:
    doctor = make_doctor()

    created = create_doctor_schedule(data=_request(doctor.id, service.id), db=db, current_user=admin_user)

    assert created.day_of_week == DayOfWeek.MONDAY
    assert created.day_name == 'Monday'
    assert created.capacity == 1
    assert get_doctor_schedule(schedule_id=created.id, db=db) == created


def test_create_schedule_fills_times_from_shift(db, make_doctor, service, admin_user) -> None:
    shift = Shift(name='Evening', start_time=time(16, 0), end_time=time(20, 0))
    db.add(shift)
    db.commit()
    db.refresh(shift)

    created = create_doctor_schedule(
        data=_request(make_doctor().id, service.id, shift_id=shift.id, start_time=None, end_time=None),
        db=db,
        current_user=admin_user,
    )

    assert (created.start_time, created.end_time) == (time(16, 0), time(20, 0))


def test_create_schedule_for_unknown_doctor_returns_not_found(db, service, admin_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_doctor_schedule(data=_request(404, service.id), db=db, current_user=admin_user)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Doctor not found.'


def test_create_schedule_for_unknown_clinic_returns_not_found(db, make_doctor, service, admin_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_doctor_schedule(
            data=_request(make_doctor().id, service.id, clinic_id=404),
            db=db,
            current_user=admin_user,
        )

    assert exception_info.value.detail == 'Clinic not found.'


def test_list_and_update_schedules(db, make_doctor, service, admin_user) -> None:
    first_doctor = make_doctor(first_name='First')
    second_doctor = make_doctor(first_name='Second')
    created = create_doctor_schedule(data=_request(first_doctor.id, service.id), db=db, current_user=admin_user)
    create_doctor_schedule(data=_request(second_doctor.id, service.id), db=db, current_user=admin_user)

    updated = update_doctor_schedule(
        schedule_id=created.id,
        data=_request(first_doctor.id, service.id, day_of_week=DayOfWeek.SATURDAY, capacity=2),
        db=db,
        current_user=admin_user,
    )

    assert updated.day_name == 'Saturday'
    assert updated.capacity == 2
    assert [schedule.id for schedule in list_doctor_schedules(doctor_id=first_doctor.id, db=db)] == [created.id]
    assert len(list_doctor_schedules(doctor_id=None, db=db)) == 2


def test_delete_schedule_without_appointments(db, make_doctor, service, admin_user) -> None:
    created = create_doctor_schedule(data=_request(make_doctor().id, service.id), db=db, current_user=admin_user)

    delete_doctor_schedule(schedule_id=created.id, db=db, current_user=admin_user)

    with pytest.raises(HTTPException) as exception_info:
        get_doctor_schedule(schedule_id=created.id, db=db)

    assert exception_info.value.status_code == 404


def test_delete_schedule_with_appointments_is_a_conflict(db, make_doctor, service, admin_user) -> None:
    created = create_doctor_schedule(data=_request(make_doctor().id, service.id), db=db, current_user=admin_user)
    monday = date(2024, 1, 8)
    generate_appointments(db, monday, monday + timedelta(days=1))

    with pytest.raises(HTTPException) as exception_info:
        delete_doctor_schedule(schedule_id=created.id, db=db, current_user=admin_user)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'This schedule already has appointments and cannot be deleted.'
