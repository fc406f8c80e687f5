from datetime import time

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from clinic_scheduler.models.enums import DayOfWeek
from clinic_scheduler.routes.schedule_routes import DoctorScheduleRequest, create_doctor_schedule
from clinic_scheduler.routes.shift_routes import (
    ShiftRequest,
    create_shift,
    delete_shift,
    get_shift,
    list_shifts,
    update_shift,
)


def test_shift_request_rejects_reversed_times() -> None:
    with pytest.raises(ValidationError):
        ShiftRequest(name='Morning', start_time=time(12, 0), end_time=time(8, 0))


def test_create_and_list_shifts_in_start_order(db, admin_user) -> None:
    create_shift(data=ShiftRequest(name='Evening', start_time=time(16, 0), end_time=time(20, 0)), db=db, current_user=admin_user)
    create_shift(data=ShiftRequest(name='Morning', start_time=time(8, 0), end_time=time(12, 0)), db=db, current_user=admin_user)

    assert [shift.name for shift in list_shifts(db=db)] == ['Morning', 'Evening']


def test_new_shift_prefills_schedule_times(db, admin_user, make_doctor, service) -> None:
    shift = create_shift(
        data=ShiftRequest(name='Afternoon', start_time=time(13, 0), end_time=time(17, 0)),
        db=db,
        current_user=admin_user,
    )

    schedule = create_doctor_schedule(
        data=DoctorScheduleRequest(
            doctor_id=make_doctor().id,
            service_id=service.id,
            day_of_week=DayOfWeek.TUESDAY,
            slot_duration_minutes=30,
            shift_id=shift.id,
        ),
        db=db,
        current_user=admin_user,
    )

    assert (schedule.start_time, schedule.end_time) == (time(13, 0), time(17, 0))


def test_update_shift(db, admin_user) -> None:
    shift = create_shift(data=ShiftRequest(name='Morning', start_time=time(8, 0), end_time=time(12, 0)), db=db, current_user=admin_user)

    updated = update_shift(
        shift_id=shift.id,
        data=ShiftRequest(name='Early morning', start_time=time(7, 0), end_time=time(11, 0), description=' Winter hours '),
        db=db,
        current_user=admin_user,
    )

    assert updated.name == 'Early morning'
    assert updated.description == 'Winter hours'
    assert get_shift(shift_id=shift.id, db=db).start_time == time(7, 0)


def test_delete_shift_used_by_schedule_is_a_conflict(db, admin_user, make_doctor, service) -> None:
    shift = create_shift(data=ShiftRequest(name='Morning', start_time=time(8, 0), end_time=time(12, 0)), db=db, current_user=admin_user)
    create_doctor_schedule(
        data=DoctorScheduleRequest(
            doctor_id=make_doctor().id,
            service_id=service.id,
            day_of_week=DayOfWeek.MONDAY,
            slot_duration_minutes=30,
            shift_id=shift.id,
        ),
        db=db,
        current_user=admin_user,
    )

    with pytest.raises(HTTPException) as exception_info:
        delete_shift(shift_id=shift.id, db=db, current_user=admin_user)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'This shift is used by doctor schedules and cannot be deleted.'


def test_get_missing_shift_returns_not_found(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_shift(shift_id=404, db=db)

    assert exception_info.value.detail == 'Shift not found.'
