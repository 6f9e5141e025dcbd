from typing import Any

from fastapi import APIRouter, Body, Depends, status

from app.api.dependencies import get_services
from app.api.schemas.bookings import (
    BookingFormRequest,
    BookingSessionResponse,
    BookingStatusResponse,
    OrderResponse,
    PollRequest,
    PrebookRequest,
)
from app.application.services.booking_orchestrator import BookingStatus
from app.domain.entities.booking_session import BookingSession, BookingState

router = APIRouter()


def _session_response(session: BookingSession, data: dict[str, Any] | None) -> BookingSessionResponse:
    return BookingSessionResponse(
        state=session.state.value,
        match_hash=session.match_hash,
        book_hash=session.book_hash,
        order_id=session.order_id,
        item_id=session.item_id,
        partner_order_id=session.partner_order_id,
        payment_types=session.payment_types,
        data=data,
    )


def _status_response(result: BookingStatus) -> BookingStatusResponse:
    return BookingStatusResponse(
        order_id=result.order_id,
        state=result.state.value,
        vendor_status=result.vendor_status,
        is_terminal=result.is_terminal,
        attempts=result.attempts,
        data=result.data,
    )


@router.post("/bookings/prebook", response_model=BookingSessionResponse, status_code=status.HTTP_200_OK)
async def prebook(
    payload: PrebookRequest,
    services=Depends(get_services),
) -> BookingSessionResponse:
    session = await services["booking"].prebook(payload.match_hash, payload.residency, payload.language)
    return _session_response(session, session.prebook_data)


@router.post("/bookings/form", response_model=BookingSessionResponse, status_code=status.HTTP_200_OK)
async def booking_form(
    payload: BookingFormRequest,
    services=Depends(get_services),
) -> BookingSessionResponse:
    session = BookingSession(book_hash=payload.book_hash, state=BookingState.PREBOOKED)
    session = await services["booking"].get_booking_form(
        session,
        partner_order_id=payload.partner_order_id,
        user_ip=payload.user_ip,
        language=payload.language,
    )
    return _session_response(session, session.form_data)


@router.post("/bookings/finish", response_model=BookingStatusResponse, status_code=status.HTTP_200_OK)
async def finish_booking(
    payload: dict[str, Any] = Body(...),
    services=Depends(get_services),
) -> BookingStatusResponse:
    result = await services["booking"].finish_from_payload(payload)
    return _status_response(result)


@router.get("/bookings/{order_id}/status", response_model=BookingStatusResponse, status_code=status.HTTP_200_OK)
async def booking_status(
    order_id: int,
    language: str = "en",
    services=Depends(get_services),
) -> BookingStatusResponse:
    result = await services["booking"].get_status(order_id, language)
    return _status_response(result)


@router.post("/bookings/{order_id}/poll", response_model=BookingStatusResponse, status_code=status.HTTP_200_OK)
async def poll_booking(
    order_id: int,
    payload: PollRequest | None = None,
    services=Depends(get_services),
) -> BookingStatusResponse:
    payload = payload or PollRequest()
    result = await services["booking"].poll_status(
        order_id,
        interval_seconds=payload.interval_seconds,
        max_attempts=payload.max_attempts,
        deadline_seconds=payload.deadline_seconds,
        language=payload.language,
    )
    return _status_response(result)


@router.get("/bookings/{order_id}", response_model=OrderResponse, status_code=status.HTTP_200_OK)
async def order_info(
    order_id: int,
    language: str = "en",
    services=Depends(get_services),
) -> OrderResponse:
    data = await services["booking"].get_order_info(order_id, language)
    return OrderResponse(order_id=order_id, data=data)


@router.post("/bookings/{order_id}/cancel", response_model=OrderResponse, status_code=status.HTTP_200_OK)
async def cancel_order(
    order_id: int,
    language: str = "en",
    services=Depends(get_services),
) -> OrderResponse:
    data = await services["booking"].cancel_order(order_id, language)
    return OrderResponse(order_id=order_id, data=data)


@router.get("/bookings/{order_id}/documents", response_model=OrderResponse, status_code=status.HTTP_200_OK)
async def order_documents(
    order_id: int,
    language: str = "en",
    services=Depends(get_services),
) -> OrderResponse:
    """Voucher, factura y confirmación de la orden."""
    data = await services["booking"].get_order_documents(order_id, language)
    return OrderResponse(order_id=order_id, data=data)
