"""
Orquestación del flujo de reserva ETG.

    searched -> prebooked -> [form_retrieved] -> finishing -> processing -> confirmed | failed

- prebook: un fallo de la respuesta es terminal para el intento (hay que
  volver a buscar); timeouts y errores de red se propagan tal cual.
- finish: la petición se valida al construirse, antes de cualquier llamada.
  Nunca se reintenta automáticamente.
- processing no es éxito ni fallo: se sondea el estado con intervalo fijo,
  un máximo de intentos y un deadline opcional. Al agotarse se lanza
  BookingStillProcessingError en lugar de bloquear indefinidamente.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
from uuid import uuid4

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.hotel_api import HotelApiGateway
from app.domain.entities.booking_session import (
    TERMINAL_STATES,
    BookingSession,
    BookingState,
    state_from_vendor_status,
)
from app.domain.errors import (
    BookingStillProcessingError,
    DomainError,
    ExternalApiError,
    PrebookFailedError,
)
from app.domain.value_objects.finish_request import (
    FinishByBookHash,
    FinishByOrderItem,
    FinishRequest,
    finish_request_from_payload,
)
from app.domain.value_objects.payment_type import PaymentType
from app.domain.value_objects.search_params import normalize_residency

logger = logging.getLogger(__name__)


@dataclass
class BookingStatus:
    order_id: int | str | None
    state: BookingState
    vendor_status: str | None
    attempts: int = 0
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


def _extract_book_hash(data: dict[str, Any]) -> str | None:
    if data.get("book_hash"):
        return data["book_hash"]
    for hotel in data.get("hotels") or []:
        for rate in hotel.get("rates") or []:
            if rate.get("book_hash"):
                return rate["book_hash"]
    return None


class BookingOrchestrator:
    def __init__(
        self,
        hotel_api: HotelApiGateway,
        clock: Clock | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        poll_interval_seconds: float = 3.0,
        poll_max_attempts: int = 40,
        poll_deadline_seconds: float | None = None,
    ) -> None:
        self._hotel_api = hotel_api
        self._clock = clock or SystemClock()
        self._sleep = sleep or asyncio.sleep
        self._poll_interval = poll_interval_seconds
        self._poll_max_attempts = poll_max_attempts
        self._poll_deadline = poll_deadline_seconds

    # === Paso 1: prebook ===

    async def prebook(self, match_hash: str, residency: str = "us", language: str = "en") -> BookingSession:
        session = BookingSession(match_hash=match_hash)
        try:
            data = await self._hotel_api.prebook_hotel(match_hash, normalize_residency(residency), language)
        except DomainError as exc:
            if exc.is_retryable:
                raise
            logger.warning(
                "Prebook rejected by provider",
                extra={"error_code": exc.code, "error": exc.message},
            )
            raise PrebookFailedError(match_hash, exc.message, details=exc.details) from exc

        book_hash = _extract_book_hash(data)
        if not book_hash:
            raise PrebookFailedError(match_hash, "provider response has no book_hash", details={"raw": data})

        session.mark_prebooked(book_hash, data)
        logger.info("Rate prebooked", extra={"book_hash": book_hash[:20]})
        return session

    # === Paso 2 (opcional): formulario ===

    async def get_booking_form(
        self,
        session: BookingSession,
        partner_order_id: str | None = None,
        user_ip: str = "127.0.0.1",
        language: str = "en",
    ) -> BookingSession:
        session.require_state((BookingState.PREBOOKED,), "retrieve booking form")
        partner_order_id = partner_order_id or f"partner-{uuid4()}"
        data = await self._hotel_api.get_booking_form(session.book_hash, partner_order_id, language, user_ip)
        session.mark_form_retrieved(
            order_id=data.get("order_id"),
            item_id=data.get("item_id"),
            partner_order_id=data.get("partner_order_id") or partner_order_id,
            payment_types=data.get("payment_types"),
            data=data,
        )
        logger.info(
            "Booking form retrieved",
            extra={"order_id": session.order_id, "item_id": session.item_id},
        )
        return session

    # === Paso 3: finish ===

    async def finish(self, request: FinishRequest, session: BookingSession | None = None) -> BookingStatus:
        if session is not None:
            session.mark_finishing()

        data = await self._hotel_api.finish_booking(request)
        vendor_status = data.get("status") or "processing"
        order_id = data.get("order_id")
        if order_id is None and isinstance(request, FinishByOrderItem):
            order_id = request.order_id

        if session is not None:
            state = session.apply_vendor_status(vendor_status)
            session.order_id = order_id or session.order_id
        else:
            state = state_from_vendor_status(vendor_status)

        logger.info(
            "Booking finish submitted",
            extra={"order_id": order_id, "vendor_status": vendor_status, "state": state.value},
        )
        return BookingStatus(order_id=order_id, state=state, vendor_status=vendor_status, data=data)

    async def finish_from_payload(self, payload: dict[str, Any]) -> BookingStatus:
        """Valida el cuerpo crudo (sin llamar al proveedor si es inválido) y ejecuta finish."""
        return await self.finish(finish_request_from_payload(payload))

    # === Paso 4: estado ===

    async def get_status(self, order_id: int | str, language: str = "en") -> BookingStatus:
        data = await self._hotel_api.get_booking_status(order_id, language)
        vendor_status = data.get("status")
        return BookingStatus(
            order_id=order_id,
            state=state_from_vendor_status(vendor_status),
            vendor_status=vendor_status,
            attempts=1,
            data=data,
        )

    async def poll_status(
        self,
        order_id: int | str,
        interval_seconds: float | None = None,
        max_attempts: int | None = None,
        deadline_seconds: float | None = None,
        language: str = "en",
        session: BookingSession | None = None,
    ) -> BookingStatus:
        """
        Sondea hasta un estado terminal.

        Raises:
            BookingStillProcessingError: se agotaron los intentos o el deadline.
            asyncio.CancelledError: el llamador canceló el sondeo.
        """
        interval = self._poll_interval if interval_seconds is None else interval_seconds
        limit = self._poll_max_attempts if max_attempts is None else max_attempts
        deadline = self._poll_deadline if deadline_seconds is None else deadline_seconds
        started = self._clock.timestamp()
        attempts = 0

        while True:
            attempts += 1
            status = await self.get_status(order_id, language)
            status.attempts = attempts
            if session is not None:
                session.apply_vendor_status(status.vendor_status)

            if status.is_terminal:
                logger.info(
                    "Booking reached terminal status",
                    extra={"order_id": order_id, "state": status.state.value, "attempts": attempts},
                )
                return status

            if attempts >= limit:
                break
            elapsed = self._clock.timestamp() - started
            if deadline is not None and elapsed + interval > deadline:
                break
            await self._sleep(interval)

        logger.warning(
            "Booking still processing after polling limit",
            extra={"order_id": order_id, "attempts": attempts},
        )
        raise BookingStillProcessingError(order_id, attempts)

    # === Flujo completo ===

    async def book(
        self,
        match_hash: str,
        residency: str = "us",
        language: str = "en",
        payment_type: str | PaymentType = PaymentType.DEPOSIT,
        user_ip: str = "127.0.0.1",
    ) -> BookingSession:
        """prebook -> finish (book_hash) -> sondeo hasta estado terminal."""
        session = await self.prebook(match_hash, residency, language)
        request = FinishByBookHash(
            book_hash=session.book_hash,
            payment_type=payment_type,
            user_ip=user_ip,
            language=language,
        )
        result = await self.finish(request, session)
        if not result.is_terminal:
            if result.order_id is None:
                raise ExternalApiError(
                    "Finish booking: provider response has no order_id to poll",
                    code="MISSING_ORDER_ID",
                    retryable=False,
                    details={"raw": result.data},
                    http_status=502,
                )
            await self.poll_status(result.order_id, language=language, session=session)
        return session

    # === Órdenes ===

    async def get_order_info(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        return await self._hotel_api.get_order_info(order_id, language)

    async def cancel_order(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        data = await self._hotel_api.cancel_order(order_id, language)
        logger.info("Order cancelled", extra={"order_id": order_id})
        return data

    async def get_order_documents(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        data = await self._hotel_api.get_order_documents(order_id, language)
        return {"order_id": order_id, **data}
