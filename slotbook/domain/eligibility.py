"""
Day-eligibility policy: which calendar dates may be offered for booking.

Independent of time-of-day slots. Evaluated per date when rendering a
calendar, before any slot is computed.
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from typing import List, Optional

import pendulum

from .exceptions import InvalidConfigurationError, InvalidInputError
from .models import WeeklyHours

DEFAULT_HORIZON_MONTHS = 2


class DayEligibility(str, Enum):
    BOOKABLE = "bookable"
    PAST = "past"
    BEYOND_HORIZON = "beyond_horizon"
    CLOSED = "closed"

    @property
    def is_bookable(self) -> bool:
        return self is DayEligibility.BOOKABLE


def today_in(timezone: str) -> date:
    """Current calendar date in ``timezone``. Only outer layers should call this."""
    today = pendulum.today(timezone)
    return date(today.year, today.month, today.day)


class DayEligibilityPolicy:
    """
    Decides whether a date may be booked at all.

    Rules, first match wins:
    1. Before today -> PAST
    2. Later than today plus the horizon (calendar months) -> BEYOND_HORIZON
    3. Weekday without hours or marked closed -> CLOSED
    4. Otherwise -> BOOKABLE

    ``today`` is always passed in so that boundary dates can be tested.
    """

    def __init__(self, horizon_months: int = DEFAULT_HORIZON_MONTHS):
        if isinstance(horizon_months, bool) or not isinstance(horizon_months, int) or horizon_months < 0:
            raise InvalidConfigurationError(
                f"horizon_months must be a non-negative integer, got {horizon_months!r}"
            )
        self.horizon_months = horizon_months

    def horizon_end(self, today: date) -> date:
        """Last bookable date. Month arithmetic clamps to the end of shorter months."""
        end = pendulum.date(today.year, today.month, today.day).add(months=self.horizon_months)
        return date(end.year, end.month, end.day)

    def evaluate(self, day: date, today: date, weekly_hours: Optional[WeeklyHours]) -> DayEligibility:
        if day < today:
            return DayEligibility.PAST

        if day > self.horizon_end(today):
            return DayEligibility.BEYOND_HORIZON

        if weekly_hours is None or not weekly_hours.is_open_on(day):
            return DayEligibility.CLOSED

        return DayEligibility.BOOKABLE

    def is_bookable(self, day: date, today: date, weekly_hours: Optional[WeeklyHours]) -> bool:
        return self.evaluate(day, today, weekly_hours).is_bookable

    def bookable_days(
        self,
        start: date,
        end: date,
        today: date,
        weekly_hours: Optional[WeeklyHours],
    ) -> List[date]:
        """
        List every bookable date between ``start`` and ``end`` (inclusive).

        Raises:
            InvalidInputError: If ``end`` is before ``start``
        """
        if end < start:
            raise InvalidInputError(f"End date {end} is before start date {start}")

        # Nothing past the horizon can qualify
        last = min(end, self.horizon_end(today))

        days: List[date] = []
        current = max(start, today)
        while current <= last:
            if self.is_bookable(current, today, weekly_hours):
                days.append(current)
            current += timedelta(days=1)

        return days
