"""Value Objects para el paso `finish` de la reserva.

ETG acepta dos formas de cuerpo mutuamente excluyentes:

- ``FinishByBookHash``: el hash obtenido en prebook.
- ``FinishByOrderItem``: el par ``order_id``/``item_id`` devuelto por el formulario
  de reserva, junto con ``partner_order_id``, huéspedes y tipo de pago.

Ambas validan en ``__post_init__``, de modo que una instancia construida
siempre es enviable al proveedor.
"""

from dataclasses import dataclass, field
from typing import Any, Union

from app.domain.errors import (
    AmbiguousBookingIdentifierError,
    MissingBookHashError,
    MissingGuestsError,
    MissingPartnerOrderIdError,
    ValidationError,
)
from app.domain.value_objects.payment_type import PaymentType


def _positive_int(field_name: str, value: Any) -> int:
    code = f"MISSING_{field_name.upper()}"
    if value is None or value == "":
        raise ValidationError(field=field_name, message=f"{field_name} is required", code=code)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            field=field_name, message=f"{field_name} must be an integer", code=f"INVALID_{field_name.upper()}"
        ) from None
    if number <= 0:
        raise ValidationError(
            field=field_name, message=f"{field_name} must be positive", code=f"INVALID_{field_name.upper()}"
        )
    return number


@dataclass(frozen=True)
class FinishByBookHash:
    book_hash: str
    payment_type: PaymentType = PaymentType.DEPOSIT
    user_ip: str = "127.0.0.1"
    language: str = "en"

    def __post_init__(self) -> None:
        if not self.book_hash or not str(self.book_hash).strip():
            raise MissingBookHashError()
        object.__setattr__(self, "book_hash", str(self.book_hash).strip())
        object.__setattr__(self, "payment_type", PaymentType.normalize(self.payment_type))

    def to_payload(self) -> dict[str, Any]:
        return {
            "hash": self.book_hash,
            "language": self.language,
            "payment_type": self.payment_type.value,
            "user_ip": self.user_ip,
        }


@dataclass(frozen=True)
class FinishByOrderItem:
    order_id: int
    item_id: int
    partner_order_id: str | None
    guests: tuple[dict[str, Any], ...]
    payment_type: PaymentType | str | None
    language: str = "en"
    user_ip: str | None = None
    email: str | None = None
    phone: str | None = None
    upsell_data: list[dict[str, Any]] | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "order_id", _positive_int("order_id", self.order_id))
        object.__setattr__(self, "item_id", _positive_int("item_id", self.item_id))
        if not self.partner_order_id or not str(self.partner_order_id).strip():
            raise MissingPartnerOrderIdError()
        if not self.guests:
            raise MissingGuestsError()
        object.__setattr__(self, "guests", tuple(self.guests))
        object.__setattr__(self, "payment_type", PaymentType.normalize(self.payment_type))

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "order_id": self.order_id,
            "item_id": self.item_id,
            "partner_order_id": str(self.partner_order_id).strip(),
            "guests": list(self.guests),
            "payment_type": self.payment_type.value,
            "language": self.language,
        }
        if self.user_ip:
            payload["user_ip"] = self.user_ip
        if self.email:
            payload["email"] = self.email
        if self.phone:
            payload["phone"] = self.phone
        if self.upsell_data:
            payload["upsell_data"] = self.upsell_data
        return payload


FinishRequest = Union[FinishByBookHash, FinishByOrderItem]


def finish_request_from_payload(data: dict[str, Any]) -> FinishRequest:
    """
    Construye la variante correcta a partir de un cuerpo crudo.

    Rechaza cuerpos con ambos identificadores o con ninguno; no infiere
    precedencia entre flujos.
    """
    book_hash = data.get("book_hash") or data.get("hash")
    has_order_item = data.get("order_id") is not None or data.get("item_id") is not None

    if book_hash and has_order_item:
        raise AmbiguousBookingIdentifierError("send either book_hash or order_id/item_id, not both")
    if not book_hash and not has_order_item:
        raise AmbiguousBookingIdentifierError("book_hash or order_id/item_id is required")

    language = data.get("language") or "en"
    if book_hash:
        return FinishByBookHash(
            book_hash=book_hash,
            payment_type=data.get("payment_type") or PaymentType.DEPOSIT,
            user_ip=data.get("user_ip") or "127.0.0.1",
            language=language,
        )
    return FinishByOrderItem(
        order_id=data.get("order_id"),
        item_id=data.get("item_id"),
        partner_order_id=data.get("partner_order_id"),
        guests=tuple(data.get("guests") or ()),
        payment_type=data.get("payment_type"),
        language=language,
        user_ip=data.get("user_ip"),
        email=data.get("email"),
        phone=data.get("phone"),
        upsell_data=data.get("upsell_data"),
    )
