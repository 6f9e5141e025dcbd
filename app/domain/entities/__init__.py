"""Entidades del dominio de reservas de hotel."""

from app.domain.entities.booking_session import (
    BookingSession,
    BookingState,
    state_from_vendor_status,
)
from app.domain.entities.cache_entry import CacheClass, CacheEntry

__all__ = [
    # BookingSession
    "BookingSession",
    "BookingState",
    "state_from_vendor_status",
    # CacheEntry
    "CacheEntry",
    "CacheClass",
]
