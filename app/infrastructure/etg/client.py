import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pybreaker import CircuitBreaker

from app.application.interfaces.hotel_api import HotelApiGateway
from app.domain.errors import (
    AuthenticationError,
    AuthorizationError,
    DomainError,
    ExternalApiError,
    HotelNotFoundError,
    NetworkError,
    NotFoundError,
    RateLimitExceededError,
    UpstreamRequestError,
    UpstreamTimeoutError,
    UpstreamValidationError,
)
from app.domain.value_objects.finish_request import FinishRequest
from app.domain.value_objects.search_params import SearchParams
from app.infrastructure.circuit_breaker import CircuitBreakerError, build_etg_breaker
from app.infrastructure.etg.rate_limiter import EndpointRateLimiter
from app.infrastructure.etg.rate_limits import normalize_endpoint

logger = logging.getLogger(__name__)

DATE_HINT = "Dates must be in the future (format: YYYY-MM-DD)"


@dataclass(frozen=True)
class EtgTimeouts:
    """Timeouts por operación, en segundos."""

    default: float = 15.0
    search: float = 30.0
    hotel_page: float = 30.0
    prebook: float = 20.0
    finish: float = 30.0
    status: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> "EtgTimeouts":
        return cls(
            default=settings.etg_timeout_default_seconds,
            search=settings.etg_timeout_search_seconds,
            hotel_page=settings.etg_timeout_search_seconds,
            prebook=settings.etg_timeout_prebook_seconds,
            finish=settings.etg_timeout_finish_seconds,
            status=settings.etg_timeout_status_seconds,
        )


def _upstream_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or fallback)
        if error:
            return str(error)
        if body.get("message"):
            return str(body["message"])
    return fallback


class EtgApiClient(HotelApiGateway):
    def __init__(
        self,
        base_url: str,
        partner_id: str | None,
        api_key: str | None,
        rate_limiter: EndpointRateLimiter | None = None,
        timeouts: EtgTimeouts | None = None,
        breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Cliente HTTP de la API B2B v3 de ETG.

        Args:
            base_url: URL base, p.ej. https://api.worldota.net/api/b2b/v3
            partner_id: Key ID del partner (usuario de basic auth)
            api_key: API key (password de basic auth)
            rate_limiter: Limiter propio del cliente; se crea uno si no se pasa
            timeouts: Timeouts por operación
            breaker: Circuit breaker que envuelve el envío
            transport: Transporte httpx alternativo (tests)
        """
        self._base_url = base_url.rstrip("/")
        self._auth = (partner_id or "", api_key or "")
        self._rate_limiter = rate_limiter or EndpointRateLimiter()
        self._timeouts = timeouts or EtgTimeouts()
        self._breaker = breaker or build_etg_breaker()
        self._transport = transport

    @property
    def rate_limiter(self) -> EndpointRateLimiter:
        return self._rate_limiter

    async def _post(self, endpoint: str, payload: dict[str, Any], context: str, timeout: float) -> Any:
        path = normalize_endpoint(endpoint)
        url = f"{self._base_url}/{path}"
        details: dict[str, Any] = {"context": context, "endpoint": path}

        async with httpx.AsyncClient(auth=self._auth, timeout=timeout, transport=self._transport) as client:
            try:
                request = client.build_request("POST", url, json=payload)
            except (TypeError, ValueError, httpx.InvalidURL) as exc:
                raise UpstreamRequestError(
                    f"{context}: request could not be built: {exc}",
                    code="REQUEST_NOT_SENT",
                    details=details,
                ) from exc
            if request.url.scheme not in ("http", "https"):
                raise UpstreamRequestError(
                    f"{context}: unsupported URL scheme '{request.url.scheme}'",
                    code="REQUEST_NOT_SENT",
                    details=details,
                )

            await self._rate_limiter.wait_for_slot(path)

            try:
                with self._breaker.calling():
                    # Sin await entre la reserva de cupo y el registro
                    self._rate_limiter.record_request(path)
                    response = await client.send(request)
            except CircuitBreakerError as exc:
                logger.error(
                    "ETG circuit breaker is open - request not sent",
                    extra={"endpoint": path, "context": context},
                )
                raise ExternalApiError(
                    f"{context}: hotel provider temporarily unavailable",
                    code="CIRCUIT_OPEN",
                    details=details,
                ) from exc
            except httpx.TimeoutException as exc:
                logger.warning(
                    "ETG request timeout",
                    extra={"endpoint": path, "context": context, "timeout": timeout},
                )
                raise UpstreamTimeoutError(
                    f"{context}: no response within {timeout}s",
                    code="UPSTREAM_TIMEOUT",
                    details=details,
                ) from exc
            except httpx.TransportError as exc:
                logger.error("ETG network error", exc_info=exc, extra={"endpoint": path, "context": context})
                raise NetworkError(
                    f"{context}: network error: {exc}",
                    code="NETWORK_ERROR",
                    details=details,
                ) from exc

        body: Any = None
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            body = None

        details["http_status"] = response.status_code
        details["raw"] = body if body is not None else response.text[:500]

        if not response.is_success:
            raise self._error_from_status(response.status_code, body, context, details)

        if not isinstance(body, dict):
            raise ExternalApiError(f"{context}: invalid JSON response", code="INVALID_RESPONSE", details=details)

        if body.get("status") != "ok":
            message = _upstream_message(body, "unknown error")
            details["upstream_message"] = message
            logger.warning(
                "ETG returned non-ok status",
                extra={"endpoint": path, "context": context, "upstream_message": message},
            )
            if "not_found" in message.lower() or "not found" in message.lower():
                raise NotFoundError(f"{context}: {message}", code="UPSTREAM_NOT_FOUND", details=details)
            raise ExternalApiError(
                f"{context}: {message}",
                code="UPSTREAM_ERROR",
                retryable=False,
                details=details,
                http_status=502,
            )

        return body.get("data") or {}

    def _error_from_status(self, status_code: int, body: Any, context: str, details: dict[str, Any]) -> DomainError:
        message = _upstream_message(body, f"HTTP {status_code}")
        details["upstream_message"] = message
        logger.error(
            "ETG HTTP error",
            extra={"endpoint": details["endpoint"], "context": context, "http_status": status_code},
        )
        text = f"{context}: {message}"
        if status_code == 400:
            if "date" in message.lower():
                details["hint"] = DATE_HINT
                text = f"{text}. {DATE_HINT}"
            return UpstreamValidationError(text, code="UPSTREAM_VALIDATION", details=details)
        if status_code == 401:
            return AuthenticationError(text, code="UPSTREAM_UNAUTHORIZED", details=details)
        if status_code == 403:
            return AuthorizationError(text, code="UPSTREAM_FORBIDDEN", details=details)
        if status_code == 404:
            return NotFoundError(text, code="UPSTREAM_NOT_FOUND", details=details)
        if status_code == 429:
            error = RateLimitExceededError(details["endpoint"])
            error.details.update(details)
            return error
        if status_code >= 500:
            return ExternalApiError(text, code="UPSTREAM_SERVER_ERROR", details=details)
        return ExternalApiError(text, code="UPSTREAM_ERROR", retryable=False, details=details, http_status=502)

    # === Contenido ===

    async def get_hotel_information(self, hotel_id: str, language: str = "en") -> dict[str, Any]:
        return await self._post(
            "/hotel/info/",
            {"id": hotel_id, "language": language},
            context=f"Get hotel info {hotel_id}",
            timeout=self._timeouts.default,
        )

    async def search_regions(self, query: str, language: str = "en") -> dict[str, Any]:
        return await self._post(
            "/search/multicomplete/",
            {"query": query, "language": language},
            context="Destination autocomplete",
            timeout=self._timeouts.default,
        )

    # === Búsqueda ===

    @staticmethod
    def _with_match_hash(hotel: dict[str, Any]) -> dict[str, Any]:
        rates = hotel.get("rates") or []
        hotel["match_hash"] = rates[0].get("match_hash") if rates else None
        return hotel

    async def search_hotels_by_region(self, params: SearchParams) -> dict[str, Any]:
        data = await self._post(
            "/search/serp/region/",
            params.to_etg_payload(),
            context=f"Search region {params.region_id}",
            timeout=self._timeouts.search,
        )
        hotels = [self._with_match_hash(hotel) for hotel in data.get("hotels") or []]
        logger.info(
            "ETG region search completed",
            extra={"region_id": params.region_id, "hotels": len(hotels)},
        )
        return {
            "hotels": hotels,
            "search_id": data.get("search_id"),
            "region_id": data.get("region_id", params.region_id),
            "total_hotels": data.get("total_hotels", len(hotels)),
        }

    async def get_hotel_with_rates(self, hotel_id: str, params: SearchParams) -> dict[str, Any]:
        data = await self._post(
            "/search/hp/",
            params.for_hotel(hotel_id).to_etg_payload(),
            context=f"Hotel page {hotel_id}",
            timeout=self._timeouts.hotel_page,
        )
        hotels = data.get("hotels") or []
        if not hotels:
            raise HotelNotFoundError(hotel_id)
        return self._with_match_hash(hotels[0])

    # === Reserva ===

    async def prebook_hotel(self, match_hash: str, residency: str = "us", language: str = "en") -> dict[str, Any]:
        return await self._post(
            "/hotel/prebook/",
            {"hash": match_hash, "language": language, "residency": residency.upper()},
            context="Prebook rate",
            timeout=self._timeouts.prebook,
        )

    async def get_booking_form(
        self,
        book_hash: str,
        partner_order_id: str,
        language: str = "en",
        user_ip: str = "127.0.0.1",
    ) -> dict[str, Any]:
        return await self._post(
            "/hotel/order/booking/form/",
            {"hash": book_hash, "partner_order_id": partner_order_id, "language": language, "user_ip": user_ip},
            context="Get booking form",
            timeout=self._timeouts.default,
        )

    async def finish_booking(self, request: FinishRequest) -> dict[str, Any]:
        return await self._post(
            "/hotel/order/booking/finish/",
            request.to_payload(),
            context="Finish booking",
            timeout=self._timeouts.finish,
        )

    async def get_booking_status(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        return await self._post(
            "/hotel/order/booking/finish/status/",
            {"order_id": order_id, "language": language},
            context=f"Booking status {order_id}",
            timeout=self._timeouts.status,
        )

    async def get_order_info(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        return await self._post(
            "/hotel/order/info/",
            {"order_id": order_id, "language": language},
            context=f"Order info {order_id}",
            timeout=self._timeouts.default,
        )

    async def cancel_order(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        return await self._post(
            "/hotel/order/cancel/",
            {"order_id": order_id, "language": language},
            context=f"Cancel order {order_id}",
            timeout=self._timeouts.default,
        )

    async def get_order_documents(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        data = await self._post(
            "/hotel/order/document/voucher/download/",
            {"order_id": order_id, "language": language},
            context=f"Order documents {order_id}",
            timeout=self._timeouts.default,
        )
        logger.info("ETG order documents retrieved", extra={"order_id": order_id})
        return data
