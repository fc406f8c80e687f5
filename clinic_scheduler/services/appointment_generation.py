"""Materialise appointment slots from weekly doctor schedules.

A run walks every date of ``[start_date, end_date)``, skips holidays, and
splits each matching schedule window into back-to-back slots. Slots that
already exist for the same (doctor, date, start time) are left alone, so a
run can be repeated or overlap another run without creating duplicates.

Slots are committed one (date, doctor) batch at a time. A database failure
stops the run and reports how many slots were committed before it; the next
run simply retries the whole window.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler import repositories
from clinic_scheduler.core import config
from clinic_scheduler.models.doctor_schedule import DoctorSchedule
from clinic_scheduler.models.enums import AppointmentStatus, DayOfWeek

logger = logging.getLogger(__name__)

# Shift arithmetic only needs a fixed anchor day.
_ANCHOR_DATE = date(2000, 1, 1)


class ScheduleTemplateError(ValueError):
    """A weekly schedule that cannot produce slots."""


class AppointmentGenerationError(RuntimeError):
    """A generation run stopped early.

    ``created`` is the number of slots committed before the failure.
    """

    def __init__(self, message: str, created: int = 0):
        super().__init__(message)
        self.created = created


@dataclass(frozen=True)
class ScheduleTemplate:
    id: int
    doctor_id: int
    day_of_week: int
    start_time: time
    end_time: time
    slot_duration_minutes: int
    capacity: int
    service_id: int
    clinic_id: int | None = None
    generation_days: int | None = None

    @classmethod
    def from_model(cls, schedule: DoctorSchedule) -> 'ScheduleTemplate':
        clinic = schedule.clinic
        return cls(
            id=schedule.id,
            doctor_id=schedule.doctor_id,
            day_of_week=schedule.day_of_week,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            slot_duration_minutes=schedule.slot_duration_minutes,
            capacity=schedule.capacity,
            service_id=schedule.service_id,
            clinic_id=schedule.clinic_id,
            generation_days=clinic.appointment_generation_days if clinic is not None else None,
        )


@dataclass
class GenerationResult:
    start_date: date
    end_date: date
    created: int = 0
    skipped_existing: int = 0
    skipped_templates: int = 0
    cancelled: bool = False


class HolidaySet:
    def __init__(self, holidays=()):
        self._dates = {_normalize_date(holiday) for holiday in holidays}

    def is_holiday(self, day: date | datetime) -> bool:
        return _normalize_date(day) in self._dates

    def __len__(self) -> int:
        return len(self._dates)


class ScheduleTemplateIndex:
    """Templates grouped by (doctor, day of week)."""

    def __init__(self, templates):
        self._templates: dict[tuple[int, int], list[ScheduleTemplate]] = defaultdict(list)
        for template in templates:
            self._templates[(template.doctor_id, int(template.day_of_week))].append(template)
        self._doctor_ids = sorted({doctor_id for doctor_id, _ in self._templates})

    def doctor_ids(self) -> list[int]:
        return list(self._doctor_ids)

    def templates_for(self, doctor_id: int, day_of_week: int) -> list[ScheduleTemplate]:
        return list(self._templates.get((doctor_id, int(day_of_week)), ()))


class IdempotencyGuard:
    """Keys of slots already stored (or queued in this run)."""

    def __init__(self, existing_keys=()):
        self._keys: set[tuple[int, date, time]] = set(existing_keys)

    def exists(self, doctor_id: int, day: date, start_time: time) -> bool:
        return (doctor_id, day, start_time) in self._keys

    def remember(self, doctor_id: int, day: date, start_time: time) -> None:
        self._keys.add((doctor_id, day, start_time))


def _normalize_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def validate_template(template: ScheduleTemplate) -> None:
    if template.start_time is None or template.end_time is None:
        raise ScheduleTemplateError('Schedule start and end times are required.')
    if template.start_time >= template.end_time:
        raise ScheduleTemplateError('Schedule start time must be before its end time.')
    if not template.slot_duration_minutes or template.slot_duration_minutes <= 0:
        raise ScheduleTemplateError('Slot duration must be a positive number of minutes.')
    if template.capacity is None or template.capacity < 1:
        raise ScheduleTemplateError('Slot capacity must be at least 1.')
    try:
        DayOfWeek(template.day_of_week)
    except ValueError as exc:
        raise ScheduleTemplateError(f'Invalid day of week: {template.day_of_week}.') from exc


def partition_shift(start_time: time, end_time: time, slot_duration_minutes: int) -> list[tuple[time, time]]:
    """Split ``[start_time, end_time)`` into consecutive slots.

    A trailing remainder shorter than one slot is dropped, so no slot ever
    ends after ``end_time``.
    """
    if slot_duration_minutes <= 0:
        raise ScheduleTemplateError('Slot duration must be a positive number of minutes.')

    step = timedelta(minutes=slot_duration_minutes)
    current = datetime.combine(_ANCHOR_DATE, start_time)
    shift_end = datetime.combine(_ANCHOR_DATE, end_time)

    slots: list[tuple[time, time]] = []
    while current + step <= shift_end:
        slots.append((current.time(), (current + step).time()))
        current += step

    return slots


def iterate_dates(start_date: date, end_date: date):
    current = start_date
    while current < end_date:
        yield current
        current += timedelta(days=1)


def generation_horizon(template: ScheduleTemplate, today: date) -> date | None:
    """First date a clinic no longer allows slots for, if it sets a limit."""
    if template.clinic_id is None or template.generation_days is None:
        return None
    return today + timedelta(days=template.generation_days)


def build_slot_rows(template: ScheduleTemplate, day: date, guard: IdempotencyGuard, now: datetime) -> tuple[list[dict], int]:
    """Rows to insert for one template on one date, and how many were already present."""
    rows: list[dict] = []
    skipped = 0

    for slot_start, slot_end in partition_shift(template.start_time, template.end_time, template.slot_duration_minutes):
        if guard.exists(template.doctor_id, day, slot_start):
            skipped += 1
            continue

        guard.remember(template.doctor_id, day, slot_start)
        rows.append({
            'doctor_id': template.doctor_id,
            'doctor_schedule_id': template.id,
            'appointment_date': day,
            'start_time': slot_start,
            'end_time': slot_end,
            'appointment_datetime': datetime.combine(day, slot_start),
            'expire_at': datetime.combine(day, slot_end),
            'capacity': template.capacity,
            'status': AppointmentStatus.AVAILABLE.value,
            'created_at': now,
        })

    return rows, skipped


def load_templates(db: Session, result: GenerationResult, require_tariff: bool, log: logging.Logger) -> list[ScheduleTemplate]:
    templates: list[ScheduleTemplate] = []

    for schedule in repositories.list_active_templates(db):
        template = ScheduleTemplate.from_model(schedule)

        # A tariff's visit duration overrides the schedule's slot length.
        visit_duration = repositories.tariff_visit_duration(
            db, template.doctor_id, template.clinic_id, template.service_id
        )
        if visit_duration is not None and visit_duration > 0:
            template = replace(template, slot_duration_minutes=visit_duration)

        try:
            validate_template(template)
        except ScheduleTemplateError as exc:
            log.warning('Skipping schedule %s for doctor %s: %s', template.id, template.doctor_id, exc)
            result.skipped_templates += 1
            continue

        if require_tariff and not repositories.tariff_exists(
            db, template.doctor_id, template.clinic_id, template.service_id
        ):
            log.warning(
                'Skipping schedule %s for doctor %s, clinic %s and service %s: no tariff defined',
                template.id, template.doctor_id, template.clinic_id, template.service_id,
            )
            result.skipped_templates += 1
            continue

        templates.append(template)

    return templates


def generate_appointments(
    db: Session,
    start_date: date,
    end_date: date,
    *,
    cancel_event=None,
    today: date | None = None,
    require_tariff: bool | None = None,
    log: logging.Logger | None = None,
) -> GenerationResult:
    """Create missing slots for every date in ``[start_date, end_date)``.

    ``cancel_event`` is anything with ``is_set()`` (e.g. ``threading.Event``);
    it is checked before each date and a cancelled run keeps the dates it has
    already committed. Raises ``AppointmentGenerationError`` on database
    failure.
    """
    log = log or logger
    if start_date > end_date:
        raise ValueError('start_date must not be after end_date.')

    today = today or date.today()
    if require_tariff is None:
        require_tariff = config.REQUIRE_SERVICE_TARIFF

    result = GenerationResult(start_date=start_date, end_date=end_date)
    log.info('Starting appointment generation from %s to %s', start_date, end_date)

    try:
        templates = load_templates(db, result, require_tariff, log)
        holidays = HolidaySet(repositories.list_holidays(db, start_date, end_date))
        guard = IdempotencyGuard(repositories.existing_slot_keys(db, start_date, end_date))
        # Close the read transaction before the first write batch.
        db.rollback()
    except SQLAlchemyError as exc:
        db.rollback()
        log.exception('Could not load schedules for appointment generation')
        raise AppointmentGenerationError('Could not load doctor schedules.', created=0) from exc

    index = ScheduleTemplateIndex(templates)
    horizons = {template.id: generation_horizon(template, today) for template in templates}

    for day in iterate_dates(start_date, end_date):
        if cancel_event is not None and cancel_event.is_set():
            result.cancelled = True
            log.info('Appointment generation cancelled at %s after creating %d slots', day, result.created)
            break

        if holidays.is_holiday(day):
            continue

        weekday = DayOfWeek.from_date(day)
        now = datetime.now()

        for doctor_id in index.doctor_ids():
            rows: list[dict] = []
            for template in index.templates_for(doctor_id, weekday):
                horizon = horizons[template.id]
                if horizon is not None and day >= horizon:
                    continue
                template_rows, skipped = build_slot_rows(template, day, guard, now)
                rows.extend(template_rows)
                result.skipped_existing += skipped

            if not rows:
                continue

            try:
                inserted = repositories.insert_slots(db, rows)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                log.exception('Failed to store slots for doctor %s on %s', doctor_id, day)
                raise AppointmentGenerationError(
                    f'Failed to store slots for doctor {doctor_id} on {day}.',
                    created=result.created,
                ) from exc

            result.created += inserted
            result.skipped_existing += len(rows) - inserted

    log.info(
        'Generated %d appointments from %s to %s (%d already present, %d schedules skipped)',
        result.created, start_date, end_date, result.skipped_existing, result.skipped_templates,
    )
    return result
