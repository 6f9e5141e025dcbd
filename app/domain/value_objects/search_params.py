"""Value Object SearchParams - parámetros normalizados de búsqueda."""

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import Any

from app.domain.errors import ValidationError
from app.domain.value_objects.stay_dates import StayDates

DEFAULT_GUESTS: tuple[dict[str, Any], ...] = ({"adults": 2, "children": []},)
DEFAULT_RESIDENCY = "us"

_RESIDENCY_RE = re.compile(r"^[a-z]{2}$")


def normalize_residency(value: str | None) -> str:
    """
    Normaliza la residencia a un código ISO de dos letras en minúsculas.

    Acepta locales como "en-us" o "EN_US" (toma la región). Cualquier
    otro valor cae al default "us".
    """
    if not value:
        return DEFAULT_RESIDENCY
    candidate = str(value).strip().lower().replace("_", "-")
    if "-" in candidate:
        candidate = candidate.rsplit("-", 1)[-1]
    if _RESIDENCY_RE.match(candidate):
        return candidate
    return DEFAULT_RESIDENCY


def normalize_guests(guests: Any) -> tuple[dict[str, Any], ...]:
    """
    Normaliza la composición de huéspedes a `[{adults, children}]`.

    Formatos aceptados: lista de dicts, lista de enteros (adultos por
    habitación) o un entero. Cada habitación tiene al menos 1 adulto.
    """
    if guests is None or guests == [] or guests == ():
        return DEFAULT_GUESTS
    if isinstance(guests, int) and not isinstance(guests, bool):
        guests = [guests]
    if not isinstance(guests, (list, tuple)):
        raise ValidationError(field="guests", message="guests must be a list of rooms", code="INVALID_GUESTS")

    rooms = []
    for room in guests:
        if isinstance(room, dict):
            adults = room.get("adults")
            if adults is None:
                adults = 2
            children = room.get("children") or []
        elif isinstance(room, int) and not isinstance(room, bool):
            adults, children = room, []
        else:
            raise ValidationError(field="guests", message=f"invalid room: {room!r}", code="INVALID_GUESTS")
        try:
            adults = int(adults)
        except (TypeError, ValueError):
            raise ValidationError(
                field="guests", message=f"adults must be an integer: {adults!r}", code="INVALID_GUESTS"
            ) from None
        if adults < 1:
            raise ValidationError(field="guests", message="each room needs at least 1 adult", code="INVALID_GUESTS")
        try:
            ages = [int(age) for age in children]
        except (TypeError, ValueError):
            raise ValidationError(
                field="guests", message="children must be a list of ages", code="INVALID_GUESTS"
            ) from None
        rooms.append({"adults": adults, "children": ages})
    return tuple(rooms)


@dataclass(frozen=True)
class SearchParams:
    """
    Parámetros de búsqueda validados.

    Exactamente uno de `region_id` / `hotel_id` identifica el destino.
    La firma (`signature`) es estable frente al orden de claves.
    """

    stay: StayDates
    region_id: int | None = None
    hotel_id: str | None = None
    guests: tuple[dict[str, Any], ...] = field(default=DEFAULT_GUESTS, compare=False)
    currency: str = "USD"
    residency: str = DEFAULT_RESIDENCY
    language: str = "en"

    def __post_init__(self) -> None:
        if self.region_id is None and not self.hotel_id:
            raise ValidationError(field="region_id", message="region_id is required", code="MISSING_REGION_ID")
        if self.region_id is not None:
            try:
                region = int(self.region_id)
            except (TypeError, ValueError):
                region = 0
            if region <= 0:
                raise ValidationError(
                    field="region_id",
                    message=f"region_id must be a positive integer, got {self.region_id!r}",
                    code="INVALID_REGION_ID",
                )
            object.__setattr__(self, "region_id", region)
        if self.hotel_id is not None:
            object.__setattr__(self, "hotel_id", str(self.hotel_id).strip())
        object.__setattr__(self, "guests", normalize_guests(self.guests))
        object.__setattr__(self, "currency", (self.currency or "USD").strip().upper())
        object.__setattr__(self, "residency", normalize_residency(self.residency))
        object.__setattr__(self, "language", (self.language or "en").strip().lower())

    @classmethod
    def build(
        cls,
        checkin: Any,
        checkout: Any,
        region_id: Any = None,
        hotel_id: Any = None,
        guests: Any = None,
        currency: str | None = None,
        residency: str | None = None,
        language: str | None = None,
    ) -> "SearchParams":
        """Factory desde valores crudos (ISO strings, ints sin validar)."""
        return cls(
            stay=StayDates.parse(checkin, checkout),
            region_id=region_id,
            hotel_id=hotel_id,
            guests=guests,
            currency=currency or "USD",
            residency=residency or DEFAULT_RESIDENCY,
            language=language or "en",
        )

    def for_hotel(self, hotel_id: str) -> "SearchParams":
        return SearchParams(
            stay=self.stay,
            hotel_id=hotel_id,
            guests=self.guests,
            currency=self.currency,
            residency=self.residency,
            language=self.language,
        )

    def canonical(self) -> dict[str, Any]:
        return {
            "region_id": self.region_id,
            "hotel_id": self.hotel_id,
            "checkin": self.stay.checkin.isoformat(),
            "checkout": self.stay.checkout.isoformat(),
            "guests": [
                {"adults": room["adults"], "children": sorted(room["children"])} for room in self.guests
            ],
            "currency": self.currency,
            "residency": self.residency,
            "language": self.language,
        }

    def signature(self) -> str:
        """SHA-256 del JSON canónico (claves ordenadas)."""
        normalized = json.dumps(self.canonical(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode()).hexdigest()

    def to_etg_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "checkin": self.stay.checkin.isoformat(),
            "checkout": self.stay.checkout.isoformat(),
            "residency": self.residency.upper(),
            "language": self.language,
            "guests": [dict(room) for room in self.guests],
            "currency": self.currency,
        }
        if self.hotel_id:
            payload["id"] = self.hotel_id
        else:
            payload["region_id"] = self.region_id
        return payload
