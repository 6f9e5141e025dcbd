"""
Caché cache-aside con TTL sobre un `CacheRepo`.

- La expiración es perezosa: una fila expirada se trata como miss al leer.
- Las escrituras son upsert por (clase, clave).
- Un fallo del backend nunca rompe la petición: se registra y se trata
  como miss (lectura) o se omite (escritura).
"""

import asyncio
import hashlib
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError

from app.application.interfaces.cache_repo import CacheRepo
from app.application.interfaces.clock import Clock, SystemClock
from app.domain.entities.cache_entry import CacheClass, CacheEntry

logger = logging.getLogger(__name__)

DEFAULT_TTLS: dict[CacheClass, int] = {
    CacheClass.AUTOCOMPLETE: 7 * 24 * 3600,
    CacheClass.HOTEL_STATIC: 7 * 24 * 3600,
    CacheClass.SEARCH_RESULTS: 3600,
}


def hotel_static_key(hotel_id: str, language: str) -> str:
    return f"{hotel_id}:{language.lower()}"


def autocomplete_key(query: str, language: str) -> str:
    normalized = f"{query.strip().lower()}:{language.lower()}"
    return hashlib.md5(normalized.encode()).hexdigest()


class CacheStore:
    def __init__(
        self,
        repo: CacheRepo,
        clock: Clock | None = None,
        ttls: dict[CacheClass, int] | None = None,
        source_version: str | None = "etg-v3",
    ) -> None:
        self._repo = repo
        self._clock = clock or SystemClock()
        self._ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self._source_version = source_version
        self._in_flight: dict[tuple[CacheClass, str], asyncio.Future] = {}

    def ttl_for(self, cache_class: CacheClass) -> int:
        return self._ttls[cache_class]

    async def get(self, cache_class: CacheClass, key: str) -> CacheEntry | None:
        try:
            entry = await self._repo.get(cache_class, key)
        except SQLAlchemyError as exc:
            logger.warning(
                "Cache read failed, treating as miss",
                extra={"cache_class": cache_class.value, "cache_key": key, "error": str(exc)},
            )
            return None

        if entry is None:
            logger.info("Cache miss", extra={"cache_class": cache_class.value, "cache_key": key})
            return None
        if entry.is_expired(self._clock.now()):
            logger.info("Cache entry expired", extra={"cache_class": cache_class.value, "cache_key": key})
            return None

        logger.info("Cache hit", extra={"cache_class": cache_class.value, "cache_key": key})
        return entry

    async def put(
        self,
        cache_class: CacheClass,
        key: str,
        payload: Any,
        ttl_seconds: int | None = None,
    ) -> CacheEntry:
        now = self._clock.now()
        ttl = self.ttl_for(cache_class) if ttl_seconds is None else ttl_seconds
        entry = CacheEntry(
            cache_class=cache_class,
            cache_key=key,
            payload=payload,
            cached_at=now,
            expires_at=now + timedelta(seconds=ttl),
            source_version=self._source_version,
        )
        try:
            await self._repo.upsert(entry)
        except SQLAlchemyError as exc:
            logger.warning(
                "Cache write failed, continuing without cache",
                extra={"cache_class": cache_class.value, "cache_key": key, "error": str(exc)},
            )
        return entry

    async def get_or_fetch(
        self,
        cache_class: CacheClass,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl_seconds: int | None = None,
    ) -> tuple[Any, bool]:
        """
        Retorna `(payload, from_cache)`.

        Misses concurrentes de la misma clave comparten un único fetch.
        """
        entry = await self.get(cache_class, key)
        if entry is not None:
            return entry.payload, True

        flight_key = (cache_class, key)
        task = self._in_flight.get(flight_key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(cache_class, key, fetch, ttl_seconds))
            self._in_flight[flight_key] = task

            def _forget(done: asyncio.Future) -> None:
                if self._in_flight.get(flight_key) is done:
                    del self._in_flight[flight_key]

            task.add_done_callback(_forget)
        return await asyncio.shield(task), False

    async def _fetch_and_store(
        self,
        cache_class: CacheClass,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl_seconds: int | None,
    ) -> Any:
        payload = await fetch()
        await self.put(cache_class, key, payload, ttl_seconds)
        return payload

    async def invalidate(self, cache_class: CacheClass, key: str) -> None:
        try:
            await self._repo.delete(cache_class, key)
        except SQLAlchemyError as exc:
            logger.warning(
                "Cache delete failed",
                extra={"cache_class": cache_class.value, "cache_key": key, "error": str(exc)},
            )

    async def sweep_expired(self) -> int:
        """Mantenimiento opcional: borra las filas expiradas."""
        try:
            removed = await self._repo.delete_expired(self._clock.now())
        except SQLAlchemyError as exc:
            logger.warning("Cache sweep failed", extra={"error": str(exc)})
            return 0
        logger.info("Cache sweep completed", extra={"removed": removed})
        return removed
