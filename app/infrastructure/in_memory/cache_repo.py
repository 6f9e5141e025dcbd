import json
from datetime import datetime

from app.application.interfaces.cache_repo import CacheRepo
from app.domain.entities.cache_entry import CacheClass, CacheEntry


class InMemoryCacheRepo(CacheRepo):
    """
    Caché en memoria.

    Guarda el payload serializado a JSON, igual que la columna JSON de la
    tabla, para que un objeto no-JSON falle aquí también y cada lectura
    devuelva una copia independiente.
    """

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], dict] = {}

    async def get(self, cache_class: CacheClass, cache_key: str) -> CacheEntry | None:
        row = self._rows.get((cache_class.value, cache_key))
        if row is None:
            return None
        return CacheEntry(
            cache_class=cache_class,
            cache_key=cache_key,
            payload=json.loads(row["payload"]),
            cached_at=row["cached_at"],
            expires_at=row["expires_at"],
            source_version=row["source_version"],
        )

    async def upsert(self, entry: CacheEntry) -> None:
        self._rows[(entry.cache_class.value, entry.cache_key)] = {
            "payload": json.dumps(entry.payload),
            "cached_at": entry.cached_at,
            "expires_at": entry.expires_at,
            "source_version": entry.source_version,
        }

    async def delete(self, cache_class: CacheClass, cache_key: str) -> None:
        self._rows.pop((cache_class.value, cache_key), None)

    async def delete_expired(self, now: datetime) -> int:
        expired = [key for key, row in self._rows.items() if row["expires_at"] <= now]
        for key in expired:
            del self._rows[key]
        return len(expired)

    async def count(self, cache_class: CacheClass | None = None) -> int:
        if cache_class is None:
            return len(self._rows)
        return sum(1 for klass, _ in self._rows if klass == cache_class.value)
