"""
Tests del CacheStore sobre ambos backends (in-memory y SQLite).

Verifica:
- Fidelidad: lo que se guarda es lo que se lee (estructuras anidadas)
- Expiración perezosa: una entrada vencida nunca se sirve
- Upsert idempotente por (clase, clave)
- Fallos del backend degradan a miss sin romper la petición
- Misses concurrentes de la misma clave comparten un único fetch
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from app.application.services.cache_store import CacheStore, autocomplete_key, hotel_static_key
from app.domain.entities.cache_entry import CacheClass
from app.infrastructure.in_memory.cache_repo import InMemoryCacheRepo

STATIC_VM = {
    "id": "test_hotel_las_vegas",
    "name": "Test Hotel",
    "star_rating": 4,
    "images": ["https://cdn.example.test/{size}/1.jpg"],
    "amenity_groups": [{"group_name": "General", "amenities": ["Wi-Fi", "Pool"]}],
    "policy": {"check_in_time": "15:00:00", "pets": None, "deposit": 0.5},
}


class TestCacheKeys:
    def test_hotel_static_key_includes_language(self):
        assert hotel_static_key("h1", "EN") == "h1:en"
        assert hotel_static_key("h1", "en") != hotel_static_key("h1", "es")

    def test_autocomplete_key_normalizes_query(self):
        assert autocomplete_key("  Las Vegas ", "en") == autocomplete_key("las vegas", "EN")
        assert autocomplete_key("las vegas", "en") != autocomplete_key("las vegas", "es")


class TestCacheStoreRoundTrip:
    @pytest.mark.asyncio
    async def test_put_then_get_returns_equal_payload(self, cache_store):
        await cache_store.put(CacheClass.HOTEL_STATIC, "test_hotel_las_vegas:en", STATIC_VM)

        entry = await cache_store.get(CacheClass.HOTEL_STATIC, "test_hotel_las_vegas:en")

        assert entry is not None
        assert entry.payload == STATIC_VM
        assert entry.source_version == "etg-v3"

    @pytest.mark.asyncio
    async def test_miss_returns_none(self, cache_store):
        assert await cache_store.get(CacheClass.HOTEL_STATIC, "unknown:en") is None

    @pytest.mark.asyncio
    async def test_cache_classes_do_not_share_keys(self, cache_store):
        await cache_store.put(CacheClass.HOTEL_STATIC, "same-key", {"kind": "static"})

        assert await cache_store.get(CacheClass.SEARCH_RESULTS, "same-key") is None

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, cache_store, cache_repo):
        await cache_store.put(CacheClass.HOTEL_STATIC, "h1:en", {"name": "first"})
        await cache_store.put(CacheClass.HOTEL_STATIC, "h1:en", {"name": "second"})

        entry = await cache_store.get(CacheClass.HOTEL_STATIC, "h1:en")

        assert entry.payload == {"name": "second"}
        assert await cache_repo.count(CacheClass.HOTEL_STATIC) == 1

    @pytest.mark.asyncio
    async def test_invalidate_removes_entry(self, cache_store):
        await cache_store.put(CacheClass.AUTOCOMPLETE, "k", [{"label": "Las Vegas"}])

        await cache_store.invalidate(CacheClass.AUTOCOMPLETE, "k")

        assert await cache_store.get(CacheClass.AUTOCOMPLETE, "k") is None


class TestCacheExpiry:
    @pytest.mark.asyncio
    async def test_entry_served_until_expiry(self, cache_store, fake_clock):
        await cache_store.put(CacheClass.SEARCH_RESULTS, "sig", {"hotels": []})

        fake_clock.advance(seconds=3599)

        assert await cache_store.get(CacheClass.SEARCH_RESULTS, "sig") is not None

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss(self, cache_store, fake_clock):
        await cache_store.put(CacheClass.SEARCH_RESULTS, "sig", {"hotels": []})

        fake_clock.advance(seconds=3600)

        assert await cache_store.get(CacheClass.SEARCH_RESULTS, "sig") is None

    @pytest.mark.asyncio
    async def test_default_ttls_per_class(self, cache_store):
        search = await cache_store.put(CacheClass.SEARCH_RESULTS, "a", {})
        static = await cache_store.put(CacheClass.HOTEL_STATIC, "b", {})

        assert (search.expires_at - search.cached_at).total_seconds() == 3600
        assert (static.expires_at - static.cached_at).days == 7

    @pytest.mark.asyncio
    async def test_sweep_expired_deletes_only_expired(self, cache_store, cache_repo, fake_clock):
        await cache_store.put(CacheClass.SEARCH_RESULTS, "old", {}, ttl_seconds=10)
        await cache_store.put(CacheClass.HOTEL_STATIC, "fresh", {})
        fake_clock.advance(seconds=11)

        removed = await cache_store.sweep_expired()

        assert removed == 1
        assert await cache_repo.count() == 1
        assert await cache_store.get(CacheClass.HOTEL_STATIC, "fresh") is not None


class TestGetOrFetch:
    @pytest.mark.asyncio
    async def test_fetches_once_then_serves_from_cache(self, cache_store):
        fetch = AsyncMock(return_value=STATIC_VM)

        first, first_cached = await cache_store.get_or_fetch(CacheClass.HOTEL_STATIC, "h:en", fetch)
        second, second_cached = await cache_store.get_or_fetch(CacheClass.HOTEL_STATIC, "h:en", fetch)

        assert first == second == STATIC_VM
        assert (first_cached, second_cached) == (False, True)
        fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self, cache_store):
        release = asyncio.Event()
        calls = 0

        async def slow_fetch():
            nonlocal calls
            calls += 1
            await release.wait()
            return {"value": 42}

        tasks = [
            asyncio.create_task(cache_store.get_or_fetch(CacheClass.AUTOCOMPLETE, "k", slow_fetch))
            for _ in range(5)
        ]
        await asyncio.sleep(0.05)
        release.set()
        results = await asyncio.gather(*tasks)

        assert calls == 1
        assert all(payload == {"value": 42} for payload, _ in results)

    @pytest.mark.asyncio
    async def test_failed_fetch_is_not_cached(self, cache_store):
        fetch = AsyncMock(side_effect=[RuntimeError("upstream down"), {"ok": True}])

        with pytest.raises(RuntimeError):
            await cache_store.get_or_fetch(CacheClass.HOTEL_STATIC, "h:en", fetch)
        payload, from_cache = await cache_store.get_or_fetch(CacheClass.HOTEL_STATIC, "h:en", fetch)

        assert payload == {"ok": True}
        assert from_cache is False


class TestCacheBackendFailures:
    @pytest.mark.asyncio
    async def test_read_failure_is_a_miss(self, fake_clock):
        repo = InMemoryCacheRepo()
        repo.get = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
        store = CacheStore(repo=repo, clock=fake_clock)

        assert await store.get(CacheClass.HOTEL_STATIC, "h:en") is None

    @pytest.mark.asyncio
    async def test_write_failure_does_not_break_fetch(self, fake_clock):
        repo = InMemoryCacheRepo()
        repo.upsert = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("db down")))
        store = CacheStore(repo=repo, clock=fake_clock)

        payload, from_cache = await store.get_or_fetch(
            CacheClass.HOTEL_STATIC, "h:en", AsyncMock(return_value={"name": "x"})
        )

        assert payload == {"name": "x"}
        assert from_cache is False
        assert await repo.count() == 0
