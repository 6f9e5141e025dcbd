import asyncio
from functools import lru_cache
from typing import Any, Awaitable, Callable

from fastapi import Depends

from app.api.deps import AsyncSessionLocal
from app.application.interfaces.cache_repo import CacheRepo
from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.hotel_api import HotelApiGateway
from app.application.services.booking_orchestrator import BookingOrchestrator
from app.application.services.cache_store import CacheStore
from app.application.use_cases.autocomplete_destinations import AutocompleteDestinationsUseCase
from app.application.use_cases.enrich_hotels import EnrichHotelsUseCase
from app.application.use_cases.search_hotels import SearchHotelsUseCase
from app.config import Settings, get_settings
from app.domain.entities.cache_entry import CacheClass
from app.infrastructure.circuit_breaker import build_etg_breaker
from app.infrastructure.db.repositories.cache_repo_sql import CacheRepoSQL
from app.infrastructure.etg.client import EtgApiClient, EtgTimeouts
from app.infrastructure.etg.rate_limiter import EndpointRateLimiter
from app.infrastructure.in_memory.cache_repo import InMemoryCacheRepo
from app.infrastructure.in_memory.hotel_api import StubEtgGateway


def build_services(
    settings: Settings,
    hotel_api: HotelApiGateway,
    cache_repo: CacheRepo,
    rate_limiter: EndpointRateLimiter,
    clock: Clock | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> dict[str, Any]:
    clock = clock or SystemClock()
    sleep = sleep or asyncio.sleep
    cache_store = CacheStore(
        repo=cache_repo,
        clock=clock,
        ttls={
            CacheClass.AUTOCOMPLETE: settings.cache_autocomplete_ttl_seconds,
            CacheClass.HOTEL_STATIC: settings.cache_hotel_static_ttl_seconds,
            CacheClass.SEARCH_RESULTS: settings.cache_search_ttl_seconds,
        },
    )
    enricher = EnrichHotelsUseCase(
        hotel_api=hotel_api,
        cache_store=cache_store,
        batch_size=settings.enrichment_batch_size,
        batch_delay_seconds=settings.enrichment_batch_delay_seconds,
        sleep=sleep,
    )
    return {
        "cache_store": cache_store,
        "rate_limiter": rate_limiter,
        "enrich_hotels": enricher,
        "search_hotels": SearchHotelsUseCase(hotel_api=hotel_api, cache_store=cache_store, enricher=enricher),
        "autocomplete": AutocompleteDestinationsUseCase(hotel_api=hotel_api, cache_store=cache_store),
        "booking": BookingOrchestrator(
            hotel_api=hotel_api,
            clock=clock,
            sleep=sleep,
            poll_interval_seconds=settings.booking_poll_interval_seconds,
            poll_max_attempts=settings.booking_poll_max_attempts,
            poll_deadline_seconds=settings.booking_poll_deadline_seconds,
        ),
    }


@lru_cache(maxsize=1)
def _in_memory_bundle() -> dict[str, Any]:
    settings = get_settings()
    return build_services(
        settings,
        hotel_api=StubEtgGateway(),
        cache_repo=InMemoryCacheRepo(),
        rate_limiter=EndpointRateLimiter(),
    )


@lru_cache(maxsize=1)
def _etg_bundle() -> dict[str, Any]:
    settings = get_settings()
    rate_limiter = EndpointRateLimiter()
    client = EtgApiClient(
        base_url=settings.etg_base_url,
        partner_id=settings.etg_partner_id,
        api_key=settings.etg_api_key,
        rate_limiter=rate_limiter,
        timeouts=EtgTimeouts.from_settings(settings),
        breaker=build_etg_breaker(
            fail_max=settings.etg_breaker_fail_max,
            reset_timeout=settings.etg_breaker_reset_timeout,
        ),
    )
    return build_services(
        settings,
        hotel_api=client,
        cache_repo=CacheRepoSQL(AsyncSessionLocal),
        rate_limiter=rate_limiter,
    )


def get_services(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    # Servicios de proceso: el rate limiter y la caché se comparten entre peticiones
    if settings.use_in_memory:
        return _in_memory_bundle()
    return _etg_bundle()
