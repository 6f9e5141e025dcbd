from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities.cache_entry import CacheClass, CacheEntry


class CacheRepo(ABC):
    """Backend de persistencia de la caché (una fila por clase + clave)."""

    @abstractmethod
    async def get(self, cache_class: CacheClass, cache_key: str) -> CacheEntry | None:
        """Retorna la fila tal cual está guardada, expirada o no."""
        pass

    @abstractmethod
    async def upsert(self, entry: CacheEntry) -> None:
        """Inserta o reemplaza la fila de (cache_class, cache_key)."""
        pass

    @abstractmethod
    async def delete(self, cache_class: CacheClass, cache_key: str) -> None:
        pass

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Borra las filas con expires_at <= now; retorna cuántas borró."""
        pass

    @abstractmethod
    async def count(self, cache_class: CacheClass | None = None) -> int:
        pass
