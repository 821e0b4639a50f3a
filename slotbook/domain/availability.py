"""
Core business logic for calculating bookable appointment slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Iterator, List, Optional, Sequence

from .exceptions import InvalidConfigurationError
from .models import (
    CandidateSlot,
    DayHours,
    ExistingAppointment,
    TimeRange,
    from_minutes,
)

logger = logging.getLogger(__name__)

DEFAULT_SLOT_INTERVAL_MINUTES = 30


def require_positive_minutes(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigurationError(f"{name} must be an integer number of minutes, got {value!r}")
    if value <= 0:
        raise InvalidConfigurationError(f"{name} must be greater than zero, got {value}")
    return value


class AvailabilityEngine:
    """
    Calculates the start times a customer may book on a single day.

    Algorithm:
    1. Closed or unconfigured day -> nothing to offer
    2. Walk start times from opening, one slot interval apart, while the
       service still ends by closing time
    3. Drop every start whose [start, start + duration) overlaps an
       appointment that occupies the calendar
    4. Emit the survivors in ascending order

    The engine holds no state between calls, so one instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        slot_interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES,
        ignore_cancelled: bool = True,
    ):
        self.slot_interval_minutes = require_positive_minutes(
            "slot_interval_minutes", slot_interval_minutes
        )
        # When False every listed appointment blocks time, cancelled or not.
        self.ignore_cancelled = ignore_cancelled

    def compute_available_slots(
        self,
        day: date,
        day_hours: Optional[DayHours],
        service_duration_minutes: int,
        existing_appointments: Iterable[ExistingAppointment] = (),
        slot_interval_minutes: Optional[int] = None,
    ) -> List[CandidateSlot]:
        """
        Compute every bookable slot for ``day``.

        Args:
            day: The calendar date being booked
            day_hours: Business hours for the weekday of ``day`` (None if not configured)
            service_duration_minutes: Length of the chosen service
            existing_appointments: Appointments already on the books for this business
            slot_interval_minutes: Override for the distance between candidate starts

        Returns:
            Ordered list of CandidateSlot objects; empty when nothing is bookable

        Raises:
            InvalidConfigurationError: On non-positive durations or hours that close before they open
        """
        slots = list(
            self.iter_available_slots(
                day,
                day_hours,
                service_duration_minutes,
                existing_appointments,
                slot_interval_minutes=slot_interval_minutes,
            )
        )
        logger.debug(
            "%d slot(s) of %d min available on %s",
            len(slots),
            service_duration_minutes,
            day.isoformat(),
        )
        return slots

    def iter_available_slots(
        self,
        day: date,
        day_hours: Optional[DayHours],
        service_duration_minutes: int,
        existing_appointments: Iterable[ExistingAppointment] = (),
        slot_interval_minutes: Optional[int] = None,
    ) -> Iterator[CandidateSlot]:
        """
        Lazy form of :meth:`compute_available_slots`.

        Inputs are validated before the first slot is requested.
        """
        duration = require_positive_minutes("service_duration_minutes", service_duration_minutes)
        interval = require_positive_minutes(
            "slot_interval_minutes",
            self.slot_interval_minutes if slot_interval_minutes is None else slot_interval_minutes,
        )

        if day_hours is None:
            return iter(())

        window = day_hours.window()
        if window is None:
            return iter(())

        blocking = self.blocking_ranges(day, existing_appointments)
        return self._generate(day, window, duration, interval, blocking)

    def _generate(
        self,
        day: date,
        window: TimeRange,
        duration: int,
        interval: int,
        blocking: Sequence[TimeRange],
    ) -> Iterator[CandidateSlot]:
        for start in self._candidate_starts(window, duration, interval):
            candidate = TimeRange(start=start, end=start + duration)
            if any(candidate.overlaps(busy) for busy in blocking):
                continue
            yield CandidateSlot(date=day, start_time=from_minutes(start), duration_minutes=duration)

    @staticmethod
    def _candidate_starts(window: TimeRange, duration: int, interval: int) -> Iterator[int]:
        """Start times on the slot grid whose service still ends by closing time."""
        start = window.start
        while start + duration <= window.end:
            yield start
            start += interval

    def blocking_ranges(
        self,
        day: date,
        appointments: Iterable[ExistingAppointment],
    ) -> List[TimeRange]:
        """
        Occupied intervals on ``day``, sorted by start.

        Appointments on other dates cannot reach into this day since
        business hours never span midnight.
        """
        ranges = [
            appointment.occupied_range()
            for appointment in appointments
            if appointment.date == day and self._blocks(appointment)
        ]
        return sorted(ranges, key=lambda r: r.start)

    def find_conflicts(
        self,
        day: date,
        time_range: TimeRange,
        appointments: Iterable[ExistingAppointment],
    ) -> List[ExistingAppointment]:
        """
        Return the appointments on ``day`` that overlap ``time_range``.

        Used to re-validate a chosen slot against the latest state right
        before an appointment is written.
        """
        return [
            appointment
            for appointment in appointments
            if appointment.date == day
            and self._blocks(appointment)
            and appointment.occupied_range().overlaps(time_range)
        ]

    def _blocks(self, appointment: ExistingAppointment) -> bool:
        if not self.ignore_cancelled:
            return True
        return appointment.occupies_calendar


def compute_available_slots(
    day: date,
    day_hours: Optional[DayHours],
    service_duration_minutes: int,
    existing_appointments: Iterable[ExistingAppointment] = (),
    slot_interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES,
    ignore_cancelled: bool = True,
) -> List[CandidateSlot]:
    """Functional shortcut around :class:`AvailabilityEngine`."""
    engine = AvailabilityEngine(
        slot_interval_minutes=slot_interval_minutes,
        ignore_cancelled=ignore_cancelled,
    )
    return engine.compute_available_slots(day, day_hours, service_duration_minutes, existing_appointments)
