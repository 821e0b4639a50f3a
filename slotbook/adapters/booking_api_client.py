"""
HTTP client for the booking platform's public REST API.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from ..domain.exceptions import StoreError
from ..domain.models import Business, ExistingAppointment, WeeklyHours
from .records import FALLBACK_APPOINTMENT_DURATION_MINUTES, parse_appointment, parse_day_hours

logger = logging.getLogger(__name__)


class BookingApiClient:
    """
    Read-only client for the platform's public booking endpoints.

    Satisfies the hours and appointment reader protocols. It cannot commit
    bookings: creating an appointment must go through a store that
    re-validates under a lock.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10,
        fallback_duration_minutes: int = FALLBACK_APPOINTMENT_DURATION_MINUTES,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the API client.

        Args:
            base_url: Root URL of the platform, e.g. https://agenda.example.com
            timeout_seconds: Per-request timeout
            fallback_duration_minutes: Duration assumed for appointments without a service duration
            session: Optional preconfigured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.fallback_duration_minutes = fallback_duration_minutes
        self.session = session or requests.Session()
        self.headers = {"Accept": "application/json"}

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.base_url}{path}"

        try:
            response = self.session.get(
                url,
                headers=self.headers,
                params=params,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            raise StoreError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise StoreError(f"Invalid JSON from {url}: {e}") from e

    def get_business(self, slug: str) -> Business:
        """
        Look up a business by its public slug, including its active services.

        Raises:
            StoreError: If the request fails
        """
        data = self._get(f"/api/business/{slug}")
        if not isinstance(data, dict) or "id" not in data:
            raise StoreError(f"Unexpected business payload for '{slug}'")

        rows = self._get(f"/api/business/{data['id']}/services")
        try:
            return Business(
                business_id=int(data["id"]),
                slug=data.get("slug", slug),
                name=data.get("name", ""),
                services={
                    row["name"]: int(row["duration"])
                    for row in rows
                    if row.get("isActive", True)
                },
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"Malformed services payload for '{slug}': {exc}") from exc

    def fetch_weekly_hours(self, business_id: int) -> WeeklyHours:
        rows = self._get(f"/api/business/{business_id}/hours")
        return WeeklyHours.from_records(parse_day_hours(row) for row in rows)

    def fetch_appointments(self, business_id: int, day: date) -> List[ExistingAppointment]:
        """
        Fetch the appointments of one day.

        Response format (one row per appointment, joined with its service)::

            [{"id": 7, "date": "2024-06-10", "time": "10:00",
              "status": "confirmed", "service": {"duration": 45, ...}, ...}]
        """
        rows = self._get(
            f"/api/business/{business_id}/appointments",
            params={"date": day.isoformat()},
        )

        appointments = [
            parse_appointment(row, self.fallback_duration_minutes, business_id=business_id)
            for row in rows
        ]

        # The endpoint ignores unknown filters on older deployments
        same_day = [a for a in appointments if a.date == day]
        if len(same_day) != len(appointments):
            logger.warning(
                "Ignored %d appointment(s) outside %s",
                len(appointments) - len(same_day),
                day.isoformat(),
            )
        return same_day

    async def get_weekly_hours(self, business_id: int) -> WeeklyHours:
        return await asyncio.to_thread(self.fetch_weekly_hours, business_id)

    async def list_appointments(self, business_id: int, day: date) -> List[ExistingAppointment]:
        return await asyncio.to_thread(self.fetch_appointments, business_id, day)
