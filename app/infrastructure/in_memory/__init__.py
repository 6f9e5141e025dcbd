"""Implementaciones in-memory para testing y modo demo."""

from app.infrastructure.in_memory.cache_repo import InMemoryCacheRepo
from app.infrastructure.in_memory.hotel_api import StubEtgGateway

__all__ = [
    # Repositories
    "InMemoryCacheRepo",
    # Gateways
    "StubEtgGateway",
]
