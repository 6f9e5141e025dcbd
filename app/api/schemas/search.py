from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from app.domain.value_objects.search_params import normalize_residency


class GuestRoom(BaseModel):
    model_config = ConfigDict(extra="forbid")

    adults: int = Field(default=2, ge=1, le=10)
    children: list[int] = Field(default_factory=list)

    @field_validator("children")
    @classmethod
    def validate_children(cls, value: list[int]) -> list[int]:
        if any(age < 0 or age > 17 for age in value):
            raise ValueError("children ages must be between 0 and 17")
        return value


def _default_guests() -> list[GuestRoom]:
    return [GuestRoom()]


class StayRequest(BaseModel):
    """Campos comunes de búsqueda; el rango de fechas lo valida el dominio."""

    model_config = ConfigDict(extra="forbid")

    checkin: date
    checkout: date
    guests: list[GuestRoom] = Field(default_factory=_default_guests)
    currency: constr(strip_whitespace=True, min_length=3, max_length=3) = "USD"
    residency: str = "us"
    language: constr(strip_whitespace=True, min_length=2, max_length=5) = "en"

    @field_validator("residency")
    @classmethod
    def validate_residency(cls, value: str) -> str:
        return normalize_residency(value)

    def guests_payload(self) -> list[dict[str, Any]]:
        return [room.model_dump() for room in self.guests]


class SearchRequest(StayRequest):
    region_id: int
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class HotelRatesRequest(StayRequest):
    pass


class SearchResponse(BaseModel):
    search_signature: str | None = None
    search_id: str | None = None
    region_id: int | None = None
    hotels: list[dict[str, Any]]
    total_hotels: int
    page: int
    limit: int
    total_pages: int
    has_more: bool
    from_cache: bool


class HotelInfoResponse(BaseModel):
    hotel_id: str
    language: str
    static_vm: dict[str, Any]
    from_cache: bool


class DestinationResult(BaseModel):
    label: str
    region_id: int
    type: str
    country_code: str | None = None
    country_name: str | None = None
    coordinates: dict[str, Any] | None = None


class AutocompleteResponse(BaseModel):
    results: list[DestinationResult]
    total: int
    from_cache: bool
    cache_key: str | None = None
    message: str | None = None
    error: str | None = None
