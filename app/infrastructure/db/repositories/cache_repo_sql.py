from datetime import datetime, timezone

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.application.interfaces.cache_repo import CacheRepo
from app.domain.entities.cache_entry import CacheClass, CacheEntry
from app.infrastructure.db.engine import session_scope
from app.infrastructure.db.retry import with_transient_retry
from app.infrastructure.db.tables import api_cache


def _aware(value: datetime) -> datetime:
    # SQLite devuelve datetimes naive aunque la columna sea timezone=True
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CacheRepoSQL(CacheRepo):
    """Repositorio de caché sobre la tabla `api_cache`; cada operación es su propia transacción."""

    def __init__(self, session_maker: async_sessionmaker) -> None:
        self._session_maker = session_maker

    async def get(self, cache_class: CacheClass, cache_key: str) -> CacheEntry | None:
        stmt = (
            select(api_cache)
            .where(
                api_cache.c.cache_class == cache_class.value,
                api_cache.c.cache_key == cache_key,
            )
            .limit(1)
        )
        async with session_scope(self._session_maker) as session:
            result = await session.execute(stmt)
            row = result.mappings().first()
        if not row:
            return None
        return CacheEntry(
            cache_class=CacheClass(row["cache_class"]),
            cache_key=row["cache_key"],
            payload=row["payload"],
            cached_at=_aware(row["cached_at"]),
            expires_at=_aware(row["expires_at"]),
            source_version=row["source_version"],
        )

    @with_transient_retry(max_attempts=3)
    async def upsert(self, entry: CacheEntry) -> None:
        values = {
            "payload": entry.payload,
            "cached_at": entry.cached_at,
            "expires_at": entry.expires_at,
            "source_version": entry.source_version,
        }
        async with session_scope(self._session_maker) as session:
            result = await session.execute(
                update(api_cache)
                .where(
                    api_cache.c.cache_class == entry.cache_class.value,
                    api_cache.c.cache_key == entry.cache_key,
                )
                .values(**values)
            )
            if result.rowcount == 0:
                await session.execute(
                    insert(api_cache).values(
                        cache_class=entry.cache_class.value,
                        cache_key=entry.cache_key,
                        **values,
                    )
                )

    async def delete(self, cache_class: CacheClass, cache_key: str) -> None:
        async with session_scope(self._session_maker) as session:
            await session.execute(
                delete(api_cache).where(
                    api_cache.c.cache_class == cache_class.value,
                    api_cache.c.cache_key == cache_key,
                )
            )

    async def delete_expired(self, now: datetime) -> int:
        async with session_scope(self._session_maker) as session:
            result = await session.execute(delete(api_cache).where(api_cache.c.expires_at <= now))
            return result.rowcount or 0

    async def count(self, cache_class: CacheClass | None = None) -> int:
        stmt = select(func.count()).select_from(api_cache)
        if cache_class is not None:
            stmt = stmt.where(api_cache.c.cache_class == cache_class.value)
        async with session_scope(self._session_maker) as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())
