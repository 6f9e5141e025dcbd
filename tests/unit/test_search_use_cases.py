"""
Tests de los casos de uso de búsqueda: enriquecimiento, búsqueda por
región con caché y autocompletado de destinos.
"""

import pytest

from app.application.services.cache_store import CacheStore
from app.application.use_cases.autocomplete_destinations import (
    AutocompleteDestinationsUseCase,
    filter_and_sort,
    normalize_destination,
)
from app.application.use_cases.enrich_hotels import EnrichHotelsUseCase
from app.application.use_cases.search_hotels import SearchHotelsUseCase
from app.domain.errors import ExternalApiError, HotelNotFoundError, SearchNotFoundError, ValidationError
from app.domain.value_objects import SearchParams
from app.infrastructure.in_memory.cache_repo import InMemoryCacheRepo
from app.infrastructure.in_memory.hotel_api import StubEtgGateway


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def memory_store(fake_clock) -> CacheStore:
    return CacheStore(repo=InMemoryCacheRepo(), clock=fake_clock)


@pytest.fixture
def las_vegas_params() -> SearchParams:
    return SearchParams.build("2025-03-15", "2025-03-17", region_id=4898, guests=[{"adults": 2, "children": []}])


def _hotels(*ids: str) -> list[dict]:
    return [{"id": hotel_id, "rates": [{"match_hash": f"mh-{hotel_id}"}]} for hotel_id in ids]


class TestEnrichHotels:
    @pytest.mark.asyncio
    async def test_partial_failures_do_not_abort_batch(self, memory_store):
        gateway = StubEtgGateway(failing_hotel_ids={"h2", "h4"})
        enricher = EnrichHotelsUseCase(gateway, memory_store, batch_size=5, sleep=RecordingSleep())

        enriched = await enricher.execute(_hotels("h1", "h2", "h3", "h4", "h5"))

        assert [hotel["id"] for hotel in enriched] == ["h1", "h2", "h3", "h4", "h5"]
        failed = [hotel for hotel in enriched if not hotel["has_static_info"]]
        assert [hotel["id"] for hotel in failed] == ["h2", "h4"]
        assert all(hotel["static_vm"] is None for hotel in failed)
        ok = [hotel for hotel in enriched if hotel["has_static_info"]]
        assert all(hotel["static_vm"]["name"] == f"Stub Hotel {hotel['id']}" for hotel in ok)

    @pytest.mark.asyncio
    async def test_input_hotels_are_not_mutated(self, memory_store):
        hotels = _hotels("h1")
        enricher = EnrichHotelsUseCase(StubEtgGateway(), memory_store, sleep=RecordingSleep())

        await enricher.execute(hotels)

        assert "static_vm" not in hotels[0]

    @pytest.mark.asyncio
    async def test_batches_are_spaced_by_delay(self, memory_store):
        sleep = RecordingSleep()
        enricher = EnrichHotelsUseCase(
            StubEtgGateway(), memory_store, batch_size=2, batch_delay_seconds=1.0, sleep=sleep
        )

        await enricher.execute(_hotels("h1", "h2", "h3", "h4", "h5"))

        # 3 lotes, sin espera después del último
        assert sleep.calls == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_cached_static_info_skips_upstream(self, memory_store):
        gateway = StubEtgGateway(failing_hotel_ids={"h2"})
        enricher = EnrichHotelsUseCase(gateway, memory_store, sleep=RecordingSleep())

        first = await enricher.execute(_hotels("h1", "h2", "h3"))
        second = await enricher.execute(_hotels("h1", "h2", "h3"))

        info_calls = [hotel_id for hotel_id, _ in gateway.calls_to("get_hotel_information")]
        # h2 falló y se reintenta; h1 y h3 salen de caché
        assert sorted(info_calls) == ["h1", "h2", "h2", "h3"]
        assert [h["static_vm"] for h in first] == [h["static_vm"] for h in second]

    @pytest.mark.asyncio
    async def test_hotel_without_id_is_returned_unenriched(self, memory_store):
        enricher = EnrichHotelsUseCase(StubEtgGateway(), memory_store, sleep=RecordingSleep())

        enriched = await enricher.execute([{"name": "no id"}])

        assert enriched[0]["has_static_info"] is False

    @pytest.mark.asyncio
    async def test_get_static_info_reports_cache_origin(self, memory_store):
        enricher = EnrichHotelsUseCase(StubEtgGateway(), memory_store)

        _, first = await enricher.get_static_info("h1", "en")
        _, second = await enricher.get_static_info("h1", "en")

        assert (first, second) == (False, True)


class TestSearchHotels:
    @pytest.fixture
    def gateway(self) -> StubEtgGateway:
        return StubEtgGateway(hotels_per_region=5)

    @pytest.fixture
    def use_case(self, gateway, memory_store) -> SearchHotelsUseCase:
        enricher = EnrichHotelsUseCase(gateway, memory_store, sleep=RecordingSleep())
        return SearchHotelsUseCase(gateway, memory_store, enricher)

    @pytest.mark.asyncio
    async def test_search_returns_enriched_hotels_with_match_hash(self, use_case, las_vegas_params):
        result = await use_case.execute(las_vegas_params)

        assert result["total_hotels"] == 5
        assert result["from_cache"] is False
        assert all(hotel["match_hash"] for hotel in result["hotels"])
        assert all(hotel["has_static_info"] for hotel in result["hotels"])

    @pytest.mark.asyncio
    async def test_repeated_search_is_served_from_cache(self, use_case, gateway, las_vegas_params):
        first = await use_case.execute(las_vegas_params)
        second = await use_case.execute(las_vegas_params)

        assert second["from_cache"] is True
        assert second["hotels"] == first["hotels"]
        assert len(gateway.calls_to("search_hotels_by_region")) == 1

    @pytest.mark.asyncio
    async def test_search_cache_expires(self, use_case, gateway, las_vegas_params, fake_clock):
        await use_case.execute(las_vegas_params)
        fake_clock.advance(hours=1)

        result = await use_case.execute(las_vegas_params)

        assert result["from_cache"] is False
        assert len(gateway.calls_to("search_hotels_by_region")) == 2

    @pytest.mark.asyncio
    async def test_pagination_from_cached_search(self, use_case, las_vegas_params):
        first = await use_case.execute(las_vegas_params, page=1, limit=2)

        page = await use_case.paginate(first["search_signature"], page=3, limit=2)

        assert first["total_pages"] == 3
        assert first["has_more"] is True
        assert len(page["hotels"]) == 1
        assert page["has_more"] is False
        assert page["from_cache"] is True

    @pytest.mark.asyncio
    async def test_paginate_unknown_signature(self, use_case):
        with pytest.raises(SearchNotFoundError) as exc_info:
            await use_case.paginate("does-not-exist")

        assert exc_info.value.http_status == 404

    @pytest.mark.asyncio
    async def test_invalid_limit(self, use_case, las_vegas_params):
        with pytest.raises(ValidationError) as exc_info:
            await use_case.execute(las_vegas_params, limit=500)

        assert exc_info.value.code == "INVALID_LIMIT"

    @pytest.mark.asyncio
    async def test_hotel_page(self, use_case, las_vegas_params):
        hotel = await use_case.hotel_page("stub_hotel_4898_1", las_vegas_params.for_hotel("stub_hotel_4898_1"))

        assert hotel["match_hash"].startswith("mh-")
        assert hotel["has_static_info"] is True

    @pytest.mark.asyncio
    async def test_hotel_page_without_rates(self, use_case, las_vegas_params):
        with pytest.raises(HotelNotFoundError):
            await use_case.hotel_page("unknown", las_vegas_params.for_hotel("unknown"))


class TestAutocompleteDestinations:
    def test_normalize_destination(self):
        result = normalize_destination(
            {"region_id": "4898", "label": "Las Vegas", "type": "City", "country_name": "United States"}
        )

        assert result["region_id"] == 4898
        assert result["type"] == "city"
        assert result["label"] == "Las Vegas, United States"

    def test_normalize_destination_without_id(self):
        assert normalize_destination({"label": "Nowhere"}) is None

    def test_filter_and_sort_puts_cities_first(self):
        results = [
            {"type": "region", "label": "Nevada"},
            {"type": "neighborhood", "label": "Strip"},
            {"type": "city", "label": "Las Vegas"},
        ]

        assert [r["label"] for r in filter_and_sort(results, 10)] == ["Las Vegas", "Nevada"]

    @pytest.mark.asyncio
    async def test_short_query_skips_upstream(self, memory_store):
        gateway = StubEtgGateway()
        use_case = AutocompleteDestinationsUseCase(gateway, memory_store)

        result = await use_case.execute("l")

        assert result["results"] == []
        assert "at least 2" in result["message"]
        assert gateway.calls_to("search_regions") == []

    @pytest.mark.asyncio
    async def test_results_are_cached(self, memory_store):
        gateway = StubEtgGateway()
        use_case = AutocompleteDestinationsUseCase(gateway, memory_store)

        first = await use_case.execute("Las")
        second = await use_case.execute(" las ")

        assert [r["region_id"] for r in first["results"]] == [4898]
        assert second["from_cache"] is True
        assert len(gateway.calls_to("search_regions")) == 1

    @pytest.mark.asyncio
    async def test_upstream_failure_returns_empty_result(self, memory_store):
        class FailingGateway(StubEtgGateway):
            async def search_regions(self, query, language="en"):
                raise ExternalApiError("Destination autocomplete: boom", code="UPSTREAM_SERVER_ERROR")

        use_case = AutocompleteDestinationsUseCase(FailingGateway(), memory_store)

        result = await use_case.execute("Las Vegas")

        assert result["results"] == []
        assert result["error"] == "Failed to fetch destinations"
