"""
Domain-specific exception hierarchy for the slotbook application.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .models import ExistingAppointment


class SlotbookError(Exception):
    """Base class for all application-level errors."""


class InvalidInputError(SlotbookError, ValueError):
    """Raised when a value handed to the domain layer is malformed."""


class InvalidConfigurationError(InvalidInputError):
    """Raised when business hours or durations cannot describe a real window."""


class StoreError(SlotbookError):
    """Raised when business hours or appointments cannot be fetched or saved."""


class BookingError(SlotbookError):
    """Base class for failures while committing a new appointment."""


class BookingRejectedError(BookingError):
    """Raised when the requested day or time is not open for booking."""


class SlotUnavailableError(BookingError):
    """Raised when the requested range overlaps an appointment already on the books."""

    def __init__(self, message: str, conflicts: Sequence["ExistingAppointment"] = ()):
        super().__init__(message)
        self.conflicts = list(conflicts)
