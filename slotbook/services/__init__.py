"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import (
    AppointmentReaderProtocol,
    AppointmentWriterProtocol,
    BookingService,
    BusinessHoursStoreProtocol,
)

__all__ = [
    "AppointmentReaderProtocol",
    "AppointmentWriterProtocol",
    "BookingService",
    "BusinessHoursStoreProtocol",
]
