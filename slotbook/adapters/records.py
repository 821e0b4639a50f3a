"""
Conversion between the platform's JSON rows and domain models.

Rows use the platform's camelCase field names, e.g. business hours
``{"dayOfWeek": "segunda-feira", "isOpen": true, "openTime": "09:00",
"closeTime": "18:00"}`` and appointments ``{"date": "2024-06-10",
"time": "10:00", "status": "pending", "service": {"duration": 45}}``.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Mapping, Optional

from ..domain.exceptions import InvalidConfigurationError, InvalidInputError, StoreError
from ..domain.models import (
    AppointmentStatus,
    DayHours,
    ExistingAppointment,
    Weekday,
    format_wall_clock,
    parse_wall_clock,
)

# Labels the platform stores in business_hours.day_of_week (pt-BR)
WEEKDAY_ALIASES: Dict[str, Weekday] = {
    "domingo": Weekday.SUNDAY,
    "segunda-feira": Weekday.MONDAY,
    "terça-feira": Weekday.TUESDAY,
    "quarta-feira": Weekday.WEDNESDAY,
    "quinta-feira": Weekday.THURSDAY,
    "sexta-feira": Weekday.FRIDAY,
    "sábado": Weekday.SATURDAY,
}

FALLBACK_APPOINTMENT_DURATION_MINUTES = 60


def parse_weekday(label: Any) -> Weekday:
    """Map a stored weekday label onto the enum."""
    if isinstance(label, str) and label.strip().lower() in WEEKDAY_ALIASES:
        return WEEKDAY_ALIASES[label.strip().lower()]
    return Weekday.parse(label)


def parse_day_hours(row: Mapping[str, Any]) -> DayHours:
    """
    Build a DayHours record from a business-hours row.

    Raises:
        InvalidConfigurationError: If the row cannot describe business hours
    """
    is_open = row.get("isOpen", True)
    if not isinstance(is_open, bool):
        raise InvalidConfigurationError(f"isOpen must be true or false, got {is_open!r}")

    try:
        return DayHours(
            weekday=parse_weekday(row["dayOfWeek"]),
            is_open=is_open,
            open_time=parse_wall_clock(row.get("openTime", "09:00")),
            close_time=parse_wall_clock(row.get("closeTime", "18:00")),
        )
    except KeyError as exc:
        raise InvalidConfigurationError(f"Business hours row is missing {exc}") from exc
    except InvalidInputError as exc:
        raise InvalidConfigurationError(f"Invalid business hours row {dict(row)}: {exc}") from exc


def serialize_day_hours(hours: DayHours) -> Dict[str, Any]:
    return {
        "dayOfWeek": hours.weekday.name.lower(),
        "isOpen": hours.is_open,
        "openTime": format_wall_clock(hours.open_time),
        "closeTime": format_wall_clock(hours.close_time),
    }


def _appointment_duration(row: Mapping[str, Any], fallback: int) -> int:
    duration: Optional[Any] = row.get("duration")
    if duration is None:
        duration = row.get("serviceDuration")
    if duration is None and isinstance(row.get("service"), Mapping):
        duration = row["service"].get("duration")
    if duration is None:
        return fallback
    return int(duration)


def parse_appointment(
    row: Mapping[str, Any],
    fallback_duration_minutes: int = FALLBACK_APPOINTMENT_DURATION_MINUTES,
    business_id: Optional[int] = None,
) -> ExistingAppointment:
    """
    Build an ExistingAppointment from an appointment row.

    Appointments whose service has no duration are assumed to take
    ``fallback_duration_minutes``.

    Raises:
        StoreError: If the row is malformed
    """
    try:
        client = row.get("client")
        service = row.get("service")
        return ExistingAppointment(
            date=date.fromisoformat(row["date"]),
            start_time=parse_wall_clock(row["time"]),
            duration_minutes=_appointment_duration(row, fallback_duration_minutes),
            status=AppointmentStatus(str(row.get("status", "pending")).lower()),
            appointment_id=row.get("id"),
            business_id=int(row["businessId"]) if row.get("businessId") is not None else business_id,
            client_name=row.get("clientName") or (client.get("name", "") if isinstance(client, Mapping) else ""),
            service_name=row.get("serviceName") or (service.get("name", "") if isinstance(service, Mapping) else ""),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise StoreError(f"Malformed appointment row {dict(row)}: {exc}") from exc


def serialize_appointment(appointment: ExistingAppointment) -> Dict[str, Any]:
    return {
        "id": appointment.appointment_id,
        "date": appointment.date.isoformat(),
        "time": format_wall_clock(appointment.start_time),
        "duration": appointment.duration_minutes,
        "status": appointment.status.value,
        "clientName": appointment.client_name,
        "serviceName": appointment.service_name,
    }
