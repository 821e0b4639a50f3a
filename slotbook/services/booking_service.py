"""
Application services for offering and booking appointment slots.

The service coordinates fetching business hours and appointments via store
adapters and delegates the slot and day calculations to the domain-level
``AvailabilityEngine`` and ``DayEligibilityPolicy``. Booking is a two-phase
operation: slots are computed from a snapshot, and the chosen slot is
re-validated against the latest appointments under the store's lock before
it is written.
"""

from __future__ import annotations

import logging
from datetime import date, time
from typing import AsyncContextManager, Dict, List, Optional, Protocol, Union

from ..domain.availability import AvailabilityEngine, require_positive_minutes
from ..domain.eligibility import DayEligibility, DayEligibilityPolicy
from ..domain.exceptions import BookingRejectedError, SlotUnavailableError
from ..domain.models import (
    AppointmentStatus,
    CandidateSlot,
    ExistingAppointment,
    TimeRange,
    WeeklyHours,
    format_wall_clock,
    parse_wall_clock,
)

logger = logging.getLogger(__name__)


class BusinessHoursStoreProtocol(Protocol):
    """Supplies the weekly opening schedule of a business."""

    async def get_weekly_hours(self, business_id: int) -> WeeklyHours:
        """Return one DayHours record per configured weekday."""


class AppointmentReaderProtocol(Protocol):
    """Supplies the appointments already booked at a business."""

    async def list_appointments(self, business_id: int, day: date) -> List[ExistingAppointment]:
        """Return the appointments on ``day``, cancelled ones included."""


class AppointmentWriterProtocol(AppointmentReaderProtocol, Protocol):
    """Appointment store that can commit new bookings atomically."""

    def lock(self, business_id: int, day: date) -> AsyncContextManager[None]:
        """Serialise writers for one business and day."""

    async def add_appointment(
        self,
        business_id: int,
        appointment: ExistingAppointment,
    ) -> ExistingAppointment:
        """Persist ``appointment`` and return it with its assigned id."""


class BookingService:
    """
    Orchestrates store reads, slot calculation and appointment creation.

    Dependency inversion toward protocols makes it easy to plug in the JSON
    store, the HTTP client or a stub in tests.
    """

    def __init__(
        self,
        hours_store: BusinessHoursStoreProtocol,
        appointment_store: AppointmentReaderProtocol,
        engine: Optional[AvailabilityEngine] = None,
        eligibility_policy: Optional[DayEligibilityPolicy] = None,
    ) -> None:
        self._hours_store = hours_store
        self._appointment_store = appointment_store
        self._engine = engine or AvailabilityEngine()
        self._eligibility_policy = eligibility_policy or DayEligibilityPolicy()

    @property
    def engine(self) -> AvailabilityEngine:
        return self._engine

    @property
    def eligibility_policy(self) -> DayEligibilityPolicy:
        return self._eligibility_policy

    async def available_slots(
        self,
        *,
        business_id: int,
        day: date,
        service_duration_minutes: int,
        today: Optional[date] = None,
    ) -> List[CandidateSlot]:
        """
        Fetch hours and appointments, then compute the bookable slots.

        When ``today`` is given, days the eligibility policy rejects yield no
        slots at all.
        """
        weekly_hours = await self._hours_store.get_weekly_hours(business_id)

        if today is not None:
            eligibility = self._eligibility_policy.evaluate(day, today, weekly_hours)
            if not eligibility.is_bookable:
                logger.debug("No slots on %s: day is %s", day.isoformat(), eligibility.value)
                return []

        appointments = await self._appointment_store.list_appointments(business_id, day)

        return self._engine.compute_available_slots(
            day,
            weekly_hours.for_date(day),
            service_duration_minutes,
            appointments,
        )

    async def day_report(
        self,
        *,
        business_id: int,
        start: date,
        end: date,
        today: date,
    ) -> Dict[date, DayEligibility]:
        """Eligibility of every date between ``start`` and ``end`` (inclusive)."""
        weekly_hours = await self._hours_store.get_weekly_hours(business_id)
        report: Dict[date, DayEligibility] = {}

        for offset in range((end - start).days + 1):
            day = date.fromordinal(start.toordinal() + offset)
            report[day] = self._eligibility_policy.evaluate(day, today, weekly_hours)

        return report

    async def bookable_days(
        self,
        *,
        business_id: int,
        start: date,
        end: date,
        today: date,
    ) -> List[date]:
        """Dates a customer may pick in a calendar between ``start`` and ``end``."""
        weekly_hours = await self._hours_store.get_weekly_hours(business_id)
        return self._eligibility_policy.bookable_days(start, end, today, weekly_hours)

    async def book(
        self,
        *,
        business_id: int,
        day: date,
        start_time: Union[str, time],
        service_duration_minutes: int,
        today: date,
        client_name: str = "",
        service_name: str = "",
    ) -> ExistingAppointment:
        """
        Validate a chosen slot against the latest state and persist it.

        Raises:
            BookingRejectedError: If the day is not bookable or the range falls outside business hours
            SlotUnavailableError: If another appointment now overlaps the range
            InvalidInputError: If the start time or duration is malformed
        """
        store = self._appointment_store
        if not hasattr(store, "lock") or not hasattr(store, "add_appointment"):
            raise TypeError(f"{type(store).__name__} is read-only and cannot create appointments")

        duration = require_positive_minutes("service_duration_minutes", service_duration_minutes)
        start = parse_wall_clock(start_time)
        requested = TimeRange.from_start(start, duration)

        weekly_hours = await self._hours_store.get_weekly_hours(business_id)
        self._ensure_bookable(day, today, weekly_hours, requested)

        async with store.lock(business_id, day):
            current = await store.list_appointments(business_id, day)
            conflicts = self._engine.find_conflicts(day, requested, current)

            if conflicts:
                logger.warning(
                    "Rejected booking %s %s for business %s: overlaps %d appointment(s)",
                    day.isoformat(),
                    requested,
                    business_id,
                    len(conflicts),
                )
                raise SlotUnavailableError(
                    f"{day.isoformat()} {requested} is no longer available",
                    conflicts=conflicts,
                )

            appointment = await store.add_appointment(
                business_id,
                ExistingAppointment(
                    date=day,
                    start_time=start,
                    duration_minutes=duration,
                    status=AppointmentStatus.PENDING,
                    client_name=client_name,
                    service_name=service_name,
                ),
            )

        logger.info(
            "Booked %s %s for business %s (appointment %s)",
            day.isoformat(),
            format_wall_clock(start),
            business_id,
            appointment.appointment_id,
        )
        return appointment

    def _ensure_bookable(
        self,
        day: date,
        today: date,
        weekly_hours: WeeklyHours,
        requested: TimeRange,
    ) -> None:
        eligibility = self._eligibility_policy.evaluate(day, today, weekly_hours)
        if not eligibility.is_bookable:
            raise BookingRejectedError(
                f"{day.isoformat()} cannot be booked ({eligibility.value.replace('_', ' ')})"
            )

        window = weekly_hours.for_date(day).window()
        if not window.contains(requested):
            raise BookingRejectedError(
                f"{requested} is outside business hours {window} on {day.isoformat()}"
            )
