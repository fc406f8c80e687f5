from datetime import date, time, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from clinic_scheduler.core import config
from clinic_scheduler.models.enums import AppointmentStatus, DayOfWeek
from clinic_scheduler.routes import appointment_routes
from clinic_scheduler.routes.appointment_routes import (
    CreateAppointmentRequest,
    book_appointment,
    cancel_appointment,
    complete_appointment,
    create_appointment,
    generate_appointments,
    get_appointment_counts,
    list_appointments,
    resolve_generation_window,
)
from clinic_scheduler.services.appointment_generation import AppointmentGenerationError

SATURDAY = date(2024, 1, 6)


@pytest.fixture(autouse=True)
def database_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic_scheduler.routes.appointment_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def doctor(make_doctor, make_schedule):
    doctor = make_doctor()
    make_schedule(doctor, DayOfWeek.SATURDAY)
    return doctor


def _first_slot(db, doctor, user):
    return list_appointments(
        doctor_id=doctor.id,
        appointment_date=None,
        appointment_status=None,
        db=db,
        current_user=user,
    )[0]


def test_resolve_generation_window_defaults_end_from_days_ahead(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APPOINTMENT_GENERATION_DAYS_AHEAD', 14)

    assert resolve_generation_window(SATURDAY, None) == (SATURDAY, SATURDAY + timedelta(days=14))


def test_resolve_generation_window_rejects_reversed_dates() -> None:
    with pytest.raises(HTTPException) as exception_info:
        resolve_generation_window(SATURDAY, SATURDAY - timedelta(days=1))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Start date cannot be after end date.'


def test_resolve_generation_window_rejects_oversized_window(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'MAX_GENERATION_WINDOW_DAYS', 10)

    with pytest.raises(HTTPException) as exception_info:
        resolve_generation_window(SATURDAY, SATURDAY + timedelta(days=11))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Appointments can be generated for at most 10 days at once.'


def test_generate_appointments_reports_created_count(db, doctor, admin_user) -> None:
    response = generate_appointments(
        start_date=SATURDAY,
        end_date=SATURDAY + timedelta(days=1),
        db=db,
        current_user=admin_user,
    )

    assert response.created == 8
    assert response.skipped_existing == 0
    assert response.message == '8 appointments created.'


def test_generate_appointments_second_run_creates_nothing(db, doctor, admin_user) -> None:
    generate_appointments(start_date=SATURDAY, end_date=SATURDAY + timedelta(days=1), db=db, current_user=admin_user)

    response = generate_appointments(
        start_date=SATURDAY,
        end_date=SATURDAY + timedelta(days=1),
        db=db,
        current_user=admin_user,
    )

    assert response.created == 0
    assert response.skipped_existing == 8


def test_generate_appointments_maps_generation_failure_to_503(db, admin_user, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_generation(*_args, **_kwargs):
        raise AppointmentGenerationError('Failed to store slots for doctor 1 on 2024-01-07.', created=8)

    monkeypatch.setattr(appointment_routes, 'run_generation', failing_generation)

    with pytest.raises(HTTPException) as exception_info:
        generate_appointments(start_date=SATURDAY, end_date=SATURDAY + timedelta(days=2), db=db, current_user=admin_user)

    assert exception_info.value.status_code == 503
    assert exception_info.value.detail == (
        'Failed to store slots for doctor 1 on 2024-01-07. 8 appointments were created before the failure.'
    )


def test_get_appointment_counts_rejects_reversed_dates(db, staff_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_appointment_counts(
            doctor_id=1,
            start_date=SATURDAY,
            end_date=SATURDAY - timedelta(days=1),
            db=db,
            current_user=staff_user,
        )

    assert exception_info.value.status_code == 400


def test_get_appointment_counts_after_booking(db, doctor, admin_user) -> None:
    generate_appointments(start_date=SATURDAY, end_date=SATURDAY + timedelta(days=1), db=db, current_user=admin_user)
    first = _first_slot(db, doctor, admin_user)
    book_appointment(appointment_id=first.id, db=db, current_user=admin_user)

    counts = get_appointment_counts(
        doctor_id=doctor.id,
        start_date=SATURDAY,
        end_date=SATURDAY,
        db=db,
        current_user=admin_user,
    )

    assert len(counts) == 1
    assert counts[0].total_count == 8
    assert counts[0].booked_count == 1
    assert counts[0].available_count == 7


def test_list_appointments_filters_by_status(db, doctor, admin_user) -> None:
    generate_appointments(start_date=SATURDAY, end_date=SATURDAY + timedelta(days=1), db=db, current_user=admin_user)
    first = _first_slot(db, doctor, admin_user)
    book_appointment(appointment_id=first.id, db=db, current_user=admin_user)

    booked = list_appointments(
        doctor_id=None,
        appointment_date=None,
        appointment_status=AppointmentStatus.BOOKED,
        db=db,
        current_user=admin_user,
    )

    assert [appointment.id for appointment in booked] == [first.id]


def test_cancel_available_appointment_is_a_conflict(db, doctor, admin_user) -> None:
    generate_appointments(start_date=SATURDAY, end_date=SATURDAY + timedelta(days=1), db=db, current_user=admin_user)
    first = _first_slot(db, doctor, admin_user)

    with pytest.raises(HTTPException) as exception_info:
        cancel_appointment(appointment_id=first.id, db=db, current_user=admin_user)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'Cannot change appointment status from available to cancelled.'


def test_book_then_complete_appointment(db, doctor, admin_user) -> None:
    generate_appointments(start_date=SATURDAY, end_date=SATURDAY + timedelta(days=1), db=db, current_user=admin_user)
    first = _first_slot(db, doctor, admin_user)

    book_appointment(appointment_id=first.id, db=db, current_user=admin_user)
    completed = complete_appointment(appointment_id=first.id, db=db, current_user=admin_user)

    assert completed.status == AppointmentStatus.COMPLETED.value


def test_book_missing_appointment_returns_not_found(db, staff_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book_appointment(appointment_id=999, db=db, current_user=staff_user)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found.'


def test_create_appointment_request_rejects_reversed_times() -> None:
    with pytest.raises(ValidationError):
        CreateAppointmentRequest(
            doctor_schedule_id=1,
            appointment_date=SATURDAY,
            start_time=time(10, 0),
            end_time=time(9, 0),
        )


def test_create_appointment_conflicts_with_generated_slot(db, doctor, admin_user) -> None:
    generate_appointments(start_date=SATURDAY, end_date=SATURDAY + timedelta(days=1), db=db, current_user=admin_user)
    schedule_id = _first_slot(db, doctor, admin_user).doctor_schedule_id

    request = CreateAppointmentRequest(
        doctor_schedule_id=schedule_id,
        appointment_date=SATURDAY,
        start_time=time(8, 0),
        end_time=time(8, 30),
    )

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(data=request, db=db, current_user=admin_user)

    assert exception_info.value.status_code == 409


def test_create_appointment_for_unknown_schedule_returns_not_found(db, admin_user) -> None:
    request = CreateAppointmentRequest(
        doctor_schedule_id=404,
        appointment_date=SATURDAY,
        start_time=time(8, 0),
        end_time=time(8, 30),
    )

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(data=request, db=db, current_user=admin_user)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Doctor schedule not found.'
