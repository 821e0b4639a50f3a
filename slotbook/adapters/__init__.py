"""
Adapters layer - Stores for business hours and appointments.
"""

from .booking_api_client import BookingApiClient
from .json_store import JsonBookingStore

__all__ = ["BookingApiClient", "JsonBookingStore"]
