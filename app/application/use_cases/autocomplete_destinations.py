import logging
from typing import Any

from app.application.interfaces.hotel_api import HotelApiGateway
from app.application.services.cache_store import CacheStore, autocomplete_key
from app.domain.entities.cache_entry import CacheClass
from app.domain.errors import DomainError

MIN_QUERY_LENGTH = 2
MAX_CACHED_RESULTS = 40
ALLOWED_TYPES = ("city", "region")


def normalize_destination(item: dict[str, Any]) -> dict[str, Any] | None:
    """Normaliza una región de multicomplete; None si no es utilizable."""
    if not isinstance(item, dict) or not (item.get("region_id") or item.get("id")):
        return None
    try:
        region_id = int(item.get("region_id") or item.get("id"))
    except (TypeError, ValueError):
        return None

    label = item.get("label") or item.get("name") or "Unknown"
    country_name = item.get("country_name")
    if country_name and country_name not in label:
        label = f"{label}, {country_name}"

    return {
        "label": label,
        "region_id": region_id,
        "type": (item.get("type") or "unknown").lower(),
        "country_code": item.get("country_code") or item.get("country_iso_code"),
        "country_name": country_name,
        "coordinates": item.get("coordinates") or item.get("center"),
    }


def filter_and_sort(results: list[dict[str, Any]], limit: int) -> list[dict[str, Any]]:
    """Solo ciudades y regiones; ciudades primero."""
    allowed = [result for result in results if result["type"] in ALLOWED_TYPES]
    cities = [result for result in allowed if result["type"] == "city"]
    regions = [result for result in allowed if result["type"] == "region"]
    return (cities + regions)[:limit]


class AutocompleteDestinationsUseCase:
    def __init__(self, hotel_api: HotelApiGateway, cache_store: CacheStore) -> None:
        self._hotel_api = hotel_api
        self._cache = cache_store
        self._logger = logging.getLogger(__name__)

    async def _fetch(self, query: str, language: str) -> list[dict[str, Any]]:
        data = await self._hotel_api.search_regions(query, language)
        raw = (data.get("regions") or []) if isinstance(data, dict) else (data or [])
        normalized = [result for result in map(normalize_destination, raw) if result is not None]
        return filter_and_sort(normalized, MAX_CACHED_RESULTS)

    async def execute(self, query: str, language: str = "en", limit: int = 10) -> dict[str, Any]:
        if not query or len(query.strip()) < MIN_QUERY_LENGTH:
            return {
                "results": [],
                "total": 0,
                "from_cache": False,
                "message": f"Query must be at least {MIN_QUERY_LENGTH} characters",
            }

        key = autocomplete_key(query, language)
        try:
            results, from_cache = await self._cache.get_or_fetch(
                CacheClass.AUTOCOMPLETE,
                key,
                lambda: self._fetch(query.strip(), language),
            )
        except DomainError as exc:
            self._logger.warning(
                "Destination autocomplete failed, returning empty result",
                extra={"query": query, "error_code": exc.code, "error": exc.message},
            )
            return {"results": [], "total": 0, "from_cache": False, "error": "Failed to fetch destinations"}

        return {
            "results": results[:limit],
            "total": len(results),
            "from_cache": from_cache,
            "cache_key": key,
        }
