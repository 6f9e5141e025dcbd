import json
import unittest

import httpx

from app.application.interfaces.clock import FakeClock
from app.domain.errors import (
    AuthenticationError,
    ExternalApiError,
    HotelNotFoundError,
    NetworkError,
    NotFoundError,
    RateLimitExceededError,
    UpstreamRequestError,
    UpstreamTimeoutError,
    UpstreamValidationError,
)
from app.domain.value_objects import FinishByBookHash, SearchParams
from app.infrastructure.circuit_breaker import build_etg_breaker
from app.infrastructure.etg.client import DATE_HINT, EtgApiClient
from app.infrastructure.etg.rate_limiter import EndpointRateLimiter

BASE_URL = "https://api.test.etg/api/b2b/v3"


def ok(data: dict) -> httpx.Response:
    return httpx.Response(200, json={"status": "ok", "data": data, "error": None})


class TestEtgApiClient(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.requests: list[httpx.Request] = []
        self.responder = lambda request: ok({})
        self.clock = FakeClock()
        self.limiter = EndpointRateLimiter(clock=self.clock, sleep=self.clock.sleep)
        self.breaker = build_etg_breaker(fail_max=5, reset_timeout=60, name="etg-test")

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.responder(request)

        self.client = EtgApiClient(
            base_url=BASE_URL,
            partner_id="1234",
            api_key="secret",
            rate_limiter=self.limiter,
            breaker=self.breaker,
            transport=httpx.MockTransport(handler),
        )
        self.params = SearchParams.build("2025-03-15", "2025-03-17", region_id=4898)

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)

    async def test_region_search_payload_and_match_hash(self):
        self.responder = lambda request: ok({
            "search_id": "s-1",
            "hotels": [
                {"id": "test_hotel_1", "rates": [{"match_hash": "mh-1"}, {"match_hash": "mh-2"}]},
                {"id": "test_hotel_2", "rates": []},
            ],
        })

        result = await self.client.search_hotels_by_region(self.params)

        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(str(request.url), f"{BASE_URL}/search/serp/region/")
        self.assertTrue(request.headers["Authorization"].startswith("Basic "))
        self.assertEqual(self.body()["residency"], "US")
        self.assertEqual(self.body()["region_id"], 4898)
        self.assertEqual(result["hotels"][0]["match_hash"], "mh-1")
        self.assertIsNone(result["hotels"][1]["match_hash"])
        self.assertEqual(result["total_hotels"], 2)
        self.assertEqual(result["search_id"], "s-1")

    async def test_successful_call_is_recorded_by_rate_limiter(self):
        self.responder = lambda request: ok({"id": "test_hotel_1"})

        await self.client.get_hotel_information("test_hotel_1")

        self.assertEqual(self.limiter.status("/hotel/info/")["current"], 1)
        self.assertEqual(self.body(), {"id": "test_hotel_1", "language": "en"})

    async def test_unbuildable_request_is_not_sent_nor_counted(self):
        with self.assertRaises(UpstreamRequestError) as ctx:
            await self.client._post("/hotel/info/", {"id": object()}, context="Get hotel info", timeout=1)

        self.assertEqual(ctx.exception.code, "REQUEST_NOT_SENT")
        self.assertEqual(self.requests, [])
        self.assertEqual(self.limiter.status("/hotel/info/")["current"], 0)

    async def test_hotel_page_without_hotels(self):
        self.responder = lambda request: ok({"hotels": []})

        with self.assertRaises(HotelNotFoundError):
            await self.client.get_hotel_with_rates("test_hotel_1", self.params)

        self.assertEqual(self.body()["id"], "test_hotel_1")
        self.assertNotIn("region_id", self.body())

    async def test_prebook_payload(self):
        self.responder = lambda request: ok({"hotels": [{"rates": [{"book_hash": "bh-1"}]}]})

        await self.client.prebook_hotel("mh-1", residency="us")

        self.assertEqual(self.body(), {"hash": "mh-1", "language": "en", "residency": "US"})

    async def test_finish_and_status_payloads(self):
        self.responder = lambda request: ok({"order_id": 100001, "status": "processing"})

        await self.client.finish_booking(FinishByBookHash(book_hash="bh-1"))
        await self.client.get_booking_status(100001)

        self.assertEqual(self.body(0)["hash"], "bh-1")
        self.assertEqual(str(self.requests[1].url), f"{BASE_URL}/hotel/order/booking/finish/status/")
        self.assertEqual(self.body(1), {"order_id": 100001, "language": "en"})

    async def test_order_documents_payload_and_quota(self):
        self.responder = lambda request: ok({"voucher_url": "https://docs.etg/v/100001.pdf"})

        documents = await self.client.get_order_documents(100001, language="es")

        self.assertEqual(str(self.requests[0].url), f"{BASE_URL}/hotel/order/document/voucher/download/")
        self.assertEqual(self.body(), {"order_id": 100001, "language": "es"})
        self.assertEqual(documents["voucher_url"], "https://docs.etg/v/100001.pdf")
        self.assertEqual(self.limiter.status("/hotel/order/document/voucher/download/")["current"], 1)

    async def test_400_with_date_message_adds_hint(self):
        self.responder = lambda request: httpx.Response(
            400, json={"status": "error", "error": {"message": "invalid checkin date"}}
        )

        with self.assertRaises(UpstreamValidationError) as ctx:
            await self.client.search_hotels_by_region(self.params)

        self.assertIn(DATE_HINT, ctx.exception.message)
        self.assertFalse(ctx.exception.is_retryable)
        self.assertEqual(ctx.exception.details["http_status"], 400)

    async def test_401_maps_to_authentication_error(self):
        self.responder = lambda request: httpx.Response(401, json={"error": "invalid credentials"})

        with self.assertRaises(AuthenticationError) as ctx:
            await self.client.get_hotel_information("test_hotel_1")

        self.assertEqual(ctx.exception.http_status, 401)

    async def test_429_maps_to_rate_limit_error(self):
        self.responder = lambda request: httpx.Response(429, json={"error": "too many requests"})

        with self.assertRaises(RateLimitExceededError) as ctx:
            await self.client.get_hotel_information("test_hotel_1")

        self.assertTrue(ctx.exception.is_retryable)

    async def test_5xx_is_retryable(self):
        self.responder = lambda request: httpx.Response(502, text="Bad Gateway")

        with self.assertRaises(ExternalApiError) as ctx:
            await self.client.get_hotel_information("test_hotel_1")

        self.assertTrue(ctx.exception.is_retryable)
        self.assertEqual(ctx.exception.details["raw"], "Bad Gateway")

    async def test_non_ok_envelope(self):
        self.responder = lambda request: httpx.Response(
            200, json={"status": "error", "error": "double_booking_form", "data": None}
        )

        with self.assertRaises(ExternalApiError) as ctx:
            await self.client.get_booking_form("bh-1", "partner-1")

        self.assertFalse(ctx.exception.is_retryable)
        self.assertEqual(ctx.exception.details["upstream_message"], "double_booking_form")

    async def test_non_ok_not_found_envelope(self):
        self.responder = lambda request: httpx.Response(200, json={"status": "error", "error": "order_not_found"})

        with self.assertRaises(NotFoundError):
            await self.client.get_order_info(1)

    async def test_timeout_is_retryable(self):
        def raise_timeout(request):
            raise httpx.ReadTimeout("timed out", request=request)

        self.responder = raise_timeout

        with self.assertRaises(UpstreamTimeoutError) as ctx:
            await self.client.get_booking_status(100001)

        self.assertTrue(ctx.exception.is_retryable)
        self.assertEqual(ctx.exception.http_status, 504)

    async def test_connection_error_maps_to_network_error(self):
        def raise_connect(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.responder = raise_connect

        with self.assertRaises(NetworkError):
            await self.client.get_hotel_information("test_hotel_1")

    async def test_open_breaker_short_circuits(self):
        def raise_connect(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.responder = raise_connect
        for _ in range(4):
            with self.assertRaises(NetworkError):
                await self.client.get_hotel_information("test_hotel_1")

        # El quinto fallo se envió: abre el circuito pero se reporta como error de red
        with self.assertRaises(NetworkError) as tripping:
            await self.client.get_hotel_information("test_hotel_1")
        with self.assertRaises(ExternalApiError) as ctx:
            await self.client.get_hotel_information("test_hotel_1")

        self.assertEqual(tripping.exception.code, "NETWORK_ERROR")
        self.assertEqual(ctx.exception.code, "CIRCUIT_OPEN")
        self.assertEqual(len(self.requests), 5)

    async def test_short_circuited_calls_do_not_consume_quota(self):
        def raise_connect(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.responder = raise_connect
        for _ in range(12):
            with self.assertRaises((NetworkError, ExternalApiError)):
                await self.client.get_hotel_information("test_hotel_1")

        self.assertEqual(len(self.requests), 5)
        self.assertEqual(self.limiter.status("/hotel/info/")["current"], len(self.requests))

    async def test_unsupported_scheme_is_not_sent_nor_counted(self):
        client = EtgApiClient(
            base_url="ftp://api.test.etg/api/b2b/v3",
            partner_id="1234",
            api_key="secret",
            rate_limiter=self.limiter,
            breaker=self.breaker,
        )

        with self.assertRaises(UpstreamRequestError) as ctx:
            await client.get_hotel_information("test_hotel_1")

        self.assertEqual(ctx.exception.code, "REQUEST_NOT_SENT")
        self.assertEqual(self.limiter.status("/hotel/info/")["current"], 0)
        self.assertEqual(self.breaker.fail_counter, 0)


if __name__ == "__main__":
    unittest.main()
