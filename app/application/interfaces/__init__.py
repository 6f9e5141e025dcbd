"""Interfaces (Puertos) de la capa de aplicación."""

from app.application.interfaces.cache_repo import CacheRepo
from app.application.interfaces.clock import Clock, FakeClock, SystemClock
from app.application.interfaces.hotel_api import HotelApiGateway

__all__ = [
    # Repositories
    "CacheRepo",
    # Gateways
    "HotelApiGateway",
    # Utilities
    "Clock",
    "SystemClock",
    "FakeClock",
]
