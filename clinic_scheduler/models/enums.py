"""Enumerations shared by the scheduling models."""

import enum
from datetime import date


class DayOfWeek(enum.IntEnum):
    """Day of week on a Saturday-first week."""
    SATURDAY = 0
    SUNDAY = 1
    MONDAY = 2
    TUESDAY = 3
    WEDNESDAY = 4
    THURSDAY = 5
    FRIDAY = 6

    @classmethod
    def from_date(cls, day: date) -> 'DayOfWeek':
        # date.weekday() is Monday-first (Monday == 0, Saturday == 5).
        return cls((day.weekday() + 2) % 7)

    @property
    def label(self) -> str:
        return self.name.capitalize()


class AppointmentStatus(str, enum.Enum):
    """Lifecycle of a generated appointment slot."""
    AVAILABLE = 'available'
    BOOKED = 'booked'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


ALLOWED_STATUS_TRANSITIONS = {
    AppointmentStatus.AVAILABLE: {AppointmentStatus.BOOKED},
    AppointmentStatus.BOOKED: {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED},
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.COMPLETED: set(),
}
