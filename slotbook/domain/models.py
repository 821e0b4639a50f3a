"""
Domain models for business hours, appointments and bookable slots.

All times are naive local wall-clock values. Inside the domain they are
handled as minute-of-day integers relative to midnight of the booking date.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum, IntEnum
from typing import Dict, Iterable, List, Optional, Union

import pendulum

from .exceptions import InvalidConfigurationError, InvalidInputError

MINUTES_PER_DAY = 24 * 60

_WALL_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_wall_clock(value: Union[str, time]) -> time:
    """
    Parse an ``HH:MM`` string (24h) into a ``time``.

    Raises:
        InvalidInputError: If the value is not a valid wall-clock time
    """
    if isinstance(value, time):
        if value.second or value.microsecond:
            raise InvalidInputError(f"Wall-clock time must be whole minutes, got {value}")
        return value

    if not isinstance(value, str):
        raise InvalidInputError(f"Expected an HH:MM string, got {value!r}")

    match = _WALL_CLOCK_PATTERN.match(value.strip())
    if not match:
        raise InvalidInputError(f"Invalid time format '{value}'. Use HH:MM")

    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def to_minutes(value: Union[str, time]) -> int:
    """Convert a wall-clock time into minutes after midnight."""
    parsed = parse_wall_clock(value)
    return parsed.hour * 60 + parsed.minute


def from_minutes(minutes: int) -> time:
    """Convert minutes after midnight back into a wall-clock time."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidInputError(f"Minute of day out of range: {minutes}")
    return time(hour=minutes // 60, minute=minutes % 60)


def format_wall_clock(value: Union[int, time]) -> str:
    """Render minutes-of-day or a time as ``HH:MM``."""
    if isinstance(value, int):
        value = from_minutes(value)
    return value.strftime("%H:%M")


class Weekday(IntEnum):
    """
    Locale-independent day of the week, Sunday first.

    Business hours are keyed by this enum; never by a formatted day name.
    """

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_date(cls, day: date) -> "Weekday":
        # date.weekday() is Monday=0 ... Sunday=6
        return cls((day.weekday() + 1) % 7)

    @classmethod
    def parse(cls, label: Union[str, int, "Weekday"]) -> "Weekday":
        """Parse an English day name, three-letter abbreviation or index."""
        if isinstance(label, Weekday):
            return label
        if isinstance(label, int) and not isinstance(label, bool):
            try:
                return cls(label)
            except ValueError as exc:
                raise InvalidInputError(f"Weekday index must be 0-6, got {label}") from exc
        if isinstance(label, str):
            key = label.strip().lower()
            for member in cls:
                if key in (member.name.lower(), member.name.lower()[:3]):
                    return member
        raise InvalidInputError(f"Unknown weekday: {label!r}")

    @property
    def display_name(self) -> str:
        return self.name.capitalize()


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def occupies_calendar(self) -> bool:
        """Only cancelled appointments free their time."""
        return self is not AppointmentStatus.CANCELLED


@dataclass(frozen=True)
class TimeRange:
    """
    Half-open interval ``[start, end)`` in minutes after midnight.

    Invariant: start must be before end.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0:
            raise InvalidInputError(f"Range cannot start before midnight: {self.start}")
        if self.start >= self.end:
            raise InvalidInputError(
                f"Start {self.start} must be before end {self.end}"
            )

    @classmethod
    def from_start(cls, start: Union[int, time, str], duration_minutes: int) -> "TimeRange":
        if not isinstance(start, int):
            start = to_minutes(start)
        return cls(start=start, end=start + duration_minutes)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ends do not count."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies completely inside this range."""
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        end = self.end % MINUTES_PER_DAY
        return f"{format_wall_clock(self.start)} - {format_wall_clock(end)}"


@dataclass(frozen=True)
class DayHours:
    """
    Business hours for one weekday of one business.

    No overnight spans: when open, close_time must be later than open_time.
    """
    weekday: Weekday
    is_open: bool = True
    open_time: time = time(9, 0)
    close_time: time = time(18, 0)

    def window(self) -> Optional[TimeRange]:
        """
        Get the open interval for this day as minute-of-day integers.
        Returns None if the business is closed.

        Raises:
            InvalidConfigurationError: If the day is open but does not close after opening
        """
        if not self.is_open:
            return None

        open_minutes = to_minutes(self.open_time)
        close_minutes = to_minutes(self.close_time)

        if close_minutes <= open_minutes:
            raise InvalidConfigurationError(
                f"{self.weekday.display_name}: close time {format_wall_clock(self.close_time)} "
                f"must be later than open time {format_wall_clock(self.open_time)}"
            )

        return TimeRange(start=open_minutes, end=close_minutes)


@dataclass
class WeeklyHours:
    """
    The weekly opening schedule of a business, one DayHours per weekday.
    """
    days: Dict[Weekday, DayHours] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[DayHours]) -> "WeeklyHours":
        days: Dict[Weekday, DayHours] = {}
        for record in records:
            if record.weekday in days:
                raise InvalidConfigurationError(
                    f"Duplicate business hours for {record.weekday.display_name}"
                )
            days[record.weekday] = record
        return cls(days=days)

    @classmethod
    def default(cls) -> "WeeklyHours":
        """Hours a new business starts with: 09:00-18:00, closed on Sundays."""
        return cls.from_records(
            DayHours(weekday=weekday, is_open=weekday is not Weekday.SUNDAY)
            for weekday in Weekday
        )

    def for_weekday(self, weekday: Weekday) -> Optional[DayHours]:
        return self.days.get(weekday)

    def for_date(self, day: date) -> Optional[DayHours]:
        """Get the hours record for the weekday of ``day``, if one exists."""
        return self.days.get(Weekday.from_date(day))

    def is_open_on(self, day: date) -> bool:
        record = self.for_date(day)
        return record is not None and record.is_open

    def records(self) -> List[DayHours]:
        return [self.days[weekday] for weekday in sorted(self.days)]


@dataclass(frozen=True)
class ExistingAppointment:
    """
    An appointment already on the books, as seen by the availability engine.
    """
    date: date
    start_time: time
    duration_minutes: int
    status: AppointmentStatus = AppointmentStatus.PENDING
    appointment_id: Optional[int] = None
    business_id: Optional[int] = None
    client_name: str = ""
    service_name: str = ""

    def __post_init__(self):
        if isinstance(self.duration_minutes, bool) or not isinstance(self.duration_minutes, int):
            raise InvalidInputError(
                f"Appointment duration must be an integer, got {self.duration_minutes!r}"
            )
        if self.duration_minutes <= 0:
            raise InvalidInputError(
                f"Appointment duration must be positive, got {self.duration_minutes}"
            )
        if not isinstance(self.status, AppointmentStatus):
            try:
                object.__setattr__(self, "status", AppointmentStatus(str(self.status).lower()))
            except ValueError as exc:
                raise InvalidInputError(f"Unknown appointment status: {self.status!r}") from exc
        object.__setattr__(self, "start_time", parse_wall_clock(self.start_time))

    @property
    def occupies_calendar(self) -> bool:
        return self.status.occupies_calendar

    def occupied_range(self) -> TimeRange:
        return TimeRange.from_start(self.start_time, self.duration_minutes)

    def __str__(self) -> str:
        return f"{self.date.isoformat()} {self.occupied_range()} ({self.status.value})"


@dataclass(frozen=True)
class CandidateSlot:
    """
    A bookable start time produced by the availability engine.
    """
    date: date
    start_time: time
    duration_minutes: int

    @property
    def label(self) -> str:
        """Start time as ``HH:MM``."""
        return format_wall_clock(self.start_time)

    @property
    def end_time(self) -> time:
        return from_minutes(self.time_range().end % MINUTES_PER_DAY)

    def time_range(self) -> TimeRange:
        return TimeRange.from_start(self.start_time, self.duration_minutes)

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:MM - HH:MM (N min)
        """
        day = pendulum.date(self.date.year, self.date.month, self.date.day)
        return (
            f"{Weekday.from_date(self.date).display_name}, {day.format('DD.MM.YYYY')} | "
            f"{self.time_range()} ({self.duration_minutes} min)"
        )


@dataclass
class Business:
    """
    A tenant of the platform, reachable on its public page through ``slug``.
    """
    business_id: int
    slug: str
    name: str = ""
    services: Dict[str, int] = field(default_factory=dict)  # name -> duration in minutes

    def service_duration(self, name: str) -> Optional[int]:
        """Duration of a service by (case-insensitive) name."""
        for service_name, duration in self.services.items():
            if service_name.lower() == name.lower():
                return duration
        return None
