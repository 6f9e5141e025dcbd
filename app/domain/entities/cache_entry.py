"""Entidad CacheEntry - respuesta de API cacheada con expiración."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class CacheClass(str, Enum):
    """Clases de caché independientes; cada una tiene su propio espacio de claves."""

    AUTOCOMPLETE = "autocomplete"
    HOTEL_STATIC = "hotel_static"
    SEARCH_RESULTS = "search_results"


@dataclass
class CacheEntry:
    """
    Entrada de caché.

    El payload se guarda tal cual llegó (JSON opaco); nunca se sirve
    después de `expires_at`.
    """

    cache_class: CacheClass
    cache_key: str
    payload: Any
    cached_at: datetime
    expires_at: datetime
    source_version: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
