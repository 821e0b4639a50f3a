"""
File-backed booking store for local use and testing.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union

from filelock import FileLock, Timeout

from ..domain.exceptions import StoreError
from ..domain.models import Business, ExistingAppointment, WeeklyHours
from .records import (
    FALLBACK_APPOINTMENT_DURATION_MINUTES,
    parse_appointment,
    parse_day_hours,
    serialize_appointment,
    serialize_day_hours,
)

logger = logging.getLogger(__name__)

FILE_LOCK_TIMEOUT_SECONDS = 10
FILE_LOCK_POLL_SECONDS = 0.05


@dataclass
class _BusinessEntry:
    business: Business
    weekly_hours: WeeklyHours
    appointments: List[ExistingAppointment] = field(default_factory=list)


class JsonBookingStore:
    """
    Store that keeps businesses, hours and appointments in memory.

    Data is loaded from (and optionally saved back to) a JSON file shaped like::

        {"businesses": [{"id": 1, "slug": "studio-bella", "name": "...",
                         "services": [{"name": "Haircut", "duration": 30}],
                         "hours": [{"dayOfWeek": "monday", "isOpen": true,
                                    "openTime": "09:00", "closeTime": "18:00"}],
                         "appointments": [{"id": 1, "date": "2024-06-10",
                                           "time": "10:00", "duration": 45,
                                           "status": "confirmed"}]}]}

    Writers for one business and day are serialised by an ``asyncio.Lock``.
    When the store is backed by a file, :meth:`lock` also holds a lock file
    next to it, reloads the business's appointments from disk, and
    :meth:`add_appointment` writes the file before the lock is released.
    Several processes sharing one data file therefore never double-book.
    """

    def __init__(
        self,
        data: Optional[Dict[str, Any]] = None,
        data_file: Optional[Path] = None,
        fallback_duration_minutes: int = FALLBACK_APPOINTMENT_DURATION_MINUTES,
        lock_timeout_seconds: float = FILE_LOCK_TIMEOUT_SECONDS,
    ):
        """
        Initialize the store.

        Args:
            data: Parsed JSON document (takes precedence over ``data_file``)
            data_file: Path to read from and save back to
            fallback_duration_minutes: Duration assumed for appointments without one
            lock_timeout_seconds: How long to wait for another process holding the data file
        """
        self.data_file = Path(data_file) if data_file is not None else None
        self.fallback_duration_minutes = fallback_duration_minutes
        self.lock_timeout_seconds = lock_timeout_seconds
        self._entries: Dict[int, _BusinessEntry] = {}
        self._locks: Dict[Tuple[int, date], asyncio.Lock] = {}
        self._lock_users: Dict[Tuple[int, date], int] = {}
        self._file_guard = asyncio.Lock()
        self._file_lock = (
            FileLock(str(self.data_file) + ".lock") if self.data_file is not None else None
        )

        if data is None and self.data_file is not None:
            data = self._read_file(self.data_file)

        self._load(data or {})

    @classmethod
    def from_file(cls, data_file: Path, **kwargs) -> "JsonBookingStore":
        return cls(data_file=data_file, **kwargs)

    @staticmethod
    def _read_file(data_file: Path) -> Dict[str, Any]:
        if not data_file.exists():
            raise StoreError(f"Data file not found: {data_file}")

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read data file {data_file}: {exc}") from exc

        if not isinstance(data, dict):
            raise StoreError("Data file must contain a mapping at the root level.")

        return data

    @staticmethod
    def _write_file(data_file: Path, data: Dict[str, Any]) -> None:
        """Replace ``data_file`` atomically with ``data``."""
        fd, tmp_name = tempfile.mkstemp(
            dir=str(data_file.parent), prefix=f".{data_file.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, data_file)
        except OSError as exc:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreError(f"Could not save data file {data_file}: {exc}") from exc

    def _load(self, data: Dict[str, Any]) -> None:
        for raw in data.get("businesses", []):
            try:
                business = Business(
                    business_id=int(raw["id"]),
                    slug=str(raw["slug"]),
                    name=raw.get("name", ""),
                    services={
                        service["name"]: int(service["duration"])
                        for service in raw.get("services", [])
                    },
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise StoreError(f"Malformed business entry: {exc}") from exc

            if business.business_id in self._entries:
                raise StoreError(f"Duplicate business id {business.business_id}")

            hours_rows = raw.get("hours")
            weekly_hours = (
                WeeklyHours.from_records(parse_day_hours(row) for row in hours_rows)
                if hours_rows is not None
                else WeeklyHours.default()
            )

            self._entries[business.business_id] = _BusinessEntry(
                business=business,
                weekly_hours=weekly_hours,
                appointments=self._parse_appointments(raw, business.business_id),
            )

        logger.debug("Loaded %d business(es)", len(self._entries))

    def _parse_appointments(self, raw: Dict[str, Any], business_id: int) -> List[ExistingAppointment]:
        return [
            parse_appointment(row, self.fallback_duration_minutes, business_id=business_id)
            for row in raw.get("appointments", [])
        ]

    @staticmethod
    def _find_raw(data: Dict[str, Any], business_id: int) -> Dict[str, Any]:
        for raw in data.get("businesses", []):
            if str(raw.get("id")) == str(business_id):
                return raw
        raise StoreError(f"Business {business_id} is no longer in the data file")

    def _reload_appointments(self, business_id: int) -> None:
        """Replace the in-memory appointments of one business with those on disk."""
        entry = self._entry(business_id)
        raw = self._find_raw(self._read_file(self.data_file), business_id)
        entry.appointments = self._parse_appointments(raw, business_id)

    def _persist_appointments(self, business_id: int) -> None:
        """Write one business's appointments into the data file, leaving the rest as stored."""
        data = self._read_file(self.data_file)
        raw = self._find_raw(data, business_id)
        raw["appointments"] = [serialize_appointment(a) for a in self._entry(business_id).appointments]
        self._write_file(self.data_file, data)

    def _entry(self, business_id: int) -> _BusinessEntry:
        try:
            return self._entries[business_id]
        except KeyError:
            raise StoreError(f"Unknown business id: {business_id}") from None

    def list_businesses(self) -> List[Business]:
        return [entry.business for entry in self._entries.values()]

    def find_business(self, identifier: Union[int, str]) -> Business:
        """
        Find a business by id or public slug.

        Raises:
            StoreError: If no business matches
        """
        if isinstance(identifier, int) or str(identifier).isdigit():
            return self._entry(int(identifier)).business

        for entry in self._entries.values():
            if entry.business.slug == identifier:
                return entry.business

        raise StoreError(f"Unknown business: '{identifier}'")

    async def get_weekly_hours(self, business_id: int) -> WeeklyHours:
        return self._entry(business_id).weekly_hours

    async def list_appointments(self, business_id: int, day: date) -> List[ExistingAppointment]:
        return [
            appointment
            for appointment in self._entry(business_id).appointments
            if appointment.date == day
        ]

    @asynccontextmanager
    async def lock(self, business_id: int, day: date) -> AsyncIterator[None]:
        """
        Hold exclusive write access for one business and day.

        Raises:
            StoreError: If another process keeps the data file locked too long
        """
        self._entry(business_id)
        key = (business_id, day)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                if self._file_lock is None:
                    yield
                else:
                    async with self._file_guard:
                        await self._acquire_file_lock()
                        try:
                            self._reload_appointments(business_id)
                            yield
                        finally:
                            self._file_lock.release()
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def _acquire_file_lock(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.lock_timeout_seconds
        while True:
            try:
                self._file_lock.acquire(timeout=0)
                return
            except Timeout:
                if loop.time() >= deadline:
                    raise StoreError(
                        f"Timed out waiting for {self._file_lock.lock_file}"
                    ) from None
                await asyncio.sleep(FILE_LOCK_POLL_SECONDS)

    async def add_appointment(
        self,
        business_id: int,
        appointment: ExistingAppointment,
    ) -> ExistingAppointment:
        """
        Store a new appointment and assign its id.

        File-backed stores write the data file right away; call this while
        holding :meth:`lock` so the write happens before other writers see
        the file.
        """
        entry = self._entry(business_id)
        next_id = max((a.appointment_id or 0 for a in entry.appointments), default=0) + 1

        stored = ExistingAppointment(
            date=appointment.date,
            start_time=appointment.start_time,
            duration_minutes=appointment.duration_minutes,
            status=appointment.status,
            appointment_id=next_id,
            business_id=business_id,
            client_name=appointment.client_name,
            service_name=appointment.service_name,
        )
        entry.appointments.append(stored)

        if self.data_file is not None:
            try:
                self._persist_appointments(business_id)
            except StoreError:
                entry.appointments.remove(stored)
                raise
            logger.debug("Wrote appointment %d to %s", next_id, self.data_file)

        return stored

    def to_dict(self) -> Dict[str, Any]:
        return {
            "businesses": [
                {
                    "id": entry.business.business_id,
                    "slug": entry.business.slug,
                    "name": entry.business.name,
                    "services": [
                        {"name": name, "duration": duration}
                        for name, duration in entry.business.services.items()
                    ],
                    "hours": [serialize_day_hours(h) for h in entry.weekly_hours.records()],
                    "appointments": [serialize_appointment(a) for a in entry.appointments],
                }
                for entry in self._entries.values()
            ]
        }

    def save(self, data_file: Optional[Path] = None) -> None:
        """
        Export the whole in-memory state, replacing the target file.

        Bookings do not need this: :meth:`add_appointment` already writes
        file-backed stores.

        Raises:
            StoreError: If no path is known or the file cannot be written
        """
        target = data_file or self.data_file
        if target is None:
            raise StoreError("No data file to save to")

        self._write_file(Path(target), self.to_dict())
