"""Background job that keeps the upcoming appointment window generated.

The job generates once on start, then once per interval. Each run covers
``[today, today + days_ahead)``; runs are idempotent, so a failed or
cancelled run is simply completed by the next one.
"""

import asyncio
import logging
import threading
from datetime import date, timedelta

from clinic_scheduler.core import config
from clinic_scheduler.database import SessionLocal
from clinic_scheduler.services.appointment_generation import (
    AppointmentGenerationError,
    GenerationResult,
    generate_appointments,
)

logger = logging.getLogger(__name__)


class AppointmentGenerationJob:
    def __init__(
        self,
        session_factory=SessionLocal,
        interval_seconds: float | None = None,
        days_ahead: int | None = None,
        log: logging.Logger | None = None,
        clock=date.today,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or config.APPOINTMENT_GENERATION_INTERVAL_SECONDS
        self.days_ahead = days_ahead or config.APPOINTMENT_GENERATION_DAYS_AHEAD
        self.log = log or logger
        self.clock = clock
        self._stop_event = asyncio.Event()
        self._cancel_event = threading.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def window(self) -> tuple[date, date]:
        start = self.clock()
        return start, start + timedelta(days=self.days_ahead)

    def generate_window(self) -> GenerationResult:
        start, end = self.window()
        db = self.session_factory()
        try:
            return generate_appointments(db, start, end, cancel_event=self._cancel_event, log=self.log)
        finally:
            db.close()

    async def run_once(self) -> GenerationResult | None:
        try:
            result = await asyncio.to_thread(self.generate_window)
        except AppointmentGenerationError as exc:
            self.log.error(
                'Scheduled appointment generation failed after creating %d appointments: %s',
                exc.created, exc,
            )
            return None
        except Exception:
            # The next interval retries the whole window.
            self.log.exception('Error occurred while generating appointments')
            return None

        if result.cancelled:
            self.log.info('Scheduled appointment generation cancelled after creating %d appointments', result.created)
        else:
            self.log.info(
                'Scheduled appointment generation created %d appointments from %s to %s',
                result.created, result.start_date, result.end_date,
            )
        return result

    async def run_forever(self) -> None:
        self.log.info('Appointment generation job started (every %ss, %d days ahead)', self.interval_seconds, self.days_ahead)

        while not self._stop_event.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

        self.log.info('Appointment generation job stopped')

    def start(self) -> asyncio.Task:
        if not self.running:
            self._stop_event.clear()
            self._cancel_event.clear()
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        self._stop_event.set()
        self._cancel_event.set()
        if self._task is not None:
            await self._task
            self._task = None
