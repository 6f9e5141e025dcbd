"""Entidad BookingSession - progreso de una reserva en la máquina de estados."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from app.domain.errors import InvalidBookingTransitionError


class BookingState(str, Enum):
    """Estados posibles de una sesión de reserva."""

    SEARCHED = "searched"
    PREBOOKED = "prebooked"
    FORM_RETRIEVED = "form_retrieved"
    FINISHING = "finishing"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({BookingState.CONFIRMED, BookingState.FAILED})

_CONFIRMED_VENDOR_STATUSES = frozenset({"confirmed", "ok", "completed"})
_FAILED_VENDOR_STATUSES = frozenset({"failed", "error", "soldout", "cancelled", "rejected"})


def state_from_vendor_status(status: str | None) -> BookingState:
    """
    Traduce el estado que reporta ETG a un estado de la sesión.

    Cualquier valor desconocido (incluido "processing") se trata como
    no terminal.
    """
    value = (status or "").strip().lower()
    if value in _CONFIRMED_VENDOR_STATUSES:
        return BookingState.CONFIRMED
    if value in _FAILED_VENDOR_STATUSES:
        return BookingState.FAILED
    return BookingState.PROCESSING


@dataclass
class BookingSession:
    """
    Sesión de reserva.

    Se identifica por `book_hash` (flujo prebook) o por el par
    `order_id`/`item_id` (flujo formulario). El paso `finish` usa
    exactamente uno de los dos.
    """

    match_hash: str | None = None
    book_hash: str | None = None
    order_id: int | None = None
    item_id: int | None = None
    partner_order_id: str | None = None
    guests: list[dict[str, Any]] = field(default_factory=list)
    payment_type: str | None = None
    payment_types: list[dict[str, Any]] = field(default_factory=list)
    state: BookingState = BookingState.SEARCHED
    vendor_status: str | None = None
    prebook_data: dict[str, Any] | None = None
    form_data: dict[str, Any] | None = None
    updated_at: datetime | None = None

    # === Propiedades calculadas ===

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_confirmed(self) -> bool:
        return self.state == BookingState.CONFIRMED

    # === Transiciones ===

    def require_state(self, allowed: tuple[BookingState, ...], operation: str) -> None:
        if self.state not in allowed:
            raise InvalidBookingTransitionError(self.state.value, operation)

    def mark_prebooked(self, book_hash: str, data: dict[str, Any] | None = None) -> None:
        self.require_state((BookingState.SEARCHED,), "prebook")
        self.book_hash = book_hash
        self.prebook_data = data
        self.state = BookingState.PREBOOKED

    def mark_form_retrieved(
        self,
        order_id: int | None,
        item_id: int | None,
        partner_order_id: str | None,
        payment_types: list[dict[str, Any]] | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.require_state((BookingState.PREBOOKED,), "retrieve booking form")
        self.order_id = order_id
        self.item_id = item_id
        self.partner_order_id = partner_order_id
        self.payment_types = payment_types or []
        self.form_data = data
        self.state = BookingState.FORM_RETRIEVED

    def mark_finishing(self) -> None:
        self.require_state((BookingState.PREBOOKED, BookingState.FORM_RETRIEVED), "finish booking")
        self.state = BookingState.FINISHING

    def apply_vendor_status(self, status: str | None) -> BookingState:
        """Aplica un estado del proveedor (respuesta de finish o de status)."""
        self.require_state((BookingState.FINISHING, BookingState.PROCESSING), "update booking status")
        self.vendor_status = status
        self.state = state_from_vendor_status(status)
        return self.state
