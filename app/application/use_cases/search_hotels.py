import logging
import math
from typing import Any

from app.application.interfaces.hotel_api import HotelApiGateway
from app.application.services.cache_store import CacheStore
from app.application.use_cases.enrich_hotels import EnrichHotelsUseCase
from app.domain.entities.cache_entry import CacheClass
from app.domain.errors import SearchNotFoundError, ValidationError
from app.domain.value_objects.search_params import SearchParams

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _page_window(page: int, limit: int) -> tuple[int, int]:
    if page < 1:
        raise ValidationError(field="page", message="page must be >= 1", code="INVALID_PAGE")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(field="limit", message=f"limit must be between 1 and {MAX_PAGE_SIZE}", code="INVALID_LIMIT")
    start = (page - 1) * limit
    return start, start + limit


class SearchHotelsUseCase:
    """
    Búsqueda por región con caché de resultados enriquecidos.

    El resultado completo (hoteles ya enriquecidos con `static_vm`) se
    guarda bajo la firma de los parámetros; las páginas siguientes se
    sirven desde esa entrada.
    """

    def __init__(
        self,
        hotel_api: HotelApiGateway,
        cache_store: CacheStore,
        enricher: EnrichHotelsUseCase,
    ) -> None:
        self._hotel_api = hotel_api
        self._cache = cache_store
        self._enricher = enricher
        self._logger = logging.getLogger(__name__)

    async def _search_and_enrich(self, params: SearchParams) -> dict[str, Any]:
        raw = await self._hotel_api.search_hotels_by_region(params)
        hotels = await self._enricher.execute(raw.get("hotels") or [], params.language)
        return {
            "search_signature": params.signature(),
            "search_id": raw.get("search_id"),
            "region_id": raw.get("region_id", params.region_id),
            "params": params.canonical(),
            "hotels": hotels,
            "total_hotels": len(hotels),
        }

    async def execute(self, params: SearchParams, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict[str, Any]:
        _page_window(page, limit)
        if params.region_id is None:
            raise ValidationError(field="region_id", message="region_id is required", code="MISSING_REGION_ID")

        signature = params.signature()
        result, from_cache = await self._cache.get_or_fetch(
            CacheClass.SEARCH_RESULTS,
            signature,
            lambda: self._search_and_enrich(params),
        )
        self._logger.info(
            "Hotel search served",
            extra={"region_id": params.region_id, "search_signature": signature, "from_cache": from_cache},
        )
        return self._page(result, page, limit, from_cache)

    async def paginate(self, signature: str, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict[str, Any]:
        _page_window(page, limit)
        entry = await self._cache.get(CacheClass.SEARCH_RESULTS, signature)
        if entry is None:
            raise SearchNotFoundError(signature)
        return self._page(entry.payload, page, limit, from_cache=True)

    async def hotel_page(self, hotel_id: str, params: SearchParams) -> dict[str, Any]:
        """Tarifas en vivo de un hotel, enriquecidas (no se cachean)."""
        hotel = await self._hotel_api.get_hotel_with_rates(hotel_id, params)
        enriched = await self._enricher.execute([hotel], params.language)
        return enriched[0]

    @staticmethod
    def _page(result: dict[str, Any], page: int, limit: int, from_cache: bool) -> dict[str, Any]:
        start, end = _page_window(page, limit)
        hotels = result.get("hotels") or []
        total = len(hotels)
        return {
            "search_signature": result.get("search_signature"),
            "search_id": result.get("search_id"),
            "region_id": result.get("region_id"),
            "hotels": hotels[start:end],
            "total_hotels": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
            "has_more": end < total,
            "from_cache": from_cache,
        }
