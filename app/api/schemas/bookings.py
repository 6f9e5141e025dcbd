from typing import Any

from pydantic import BaseModel, ConfigDict, Field, constr


class PrebookRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    match_hash: constr(strip_whitespace=True, min_length=1)
    residency: str = "us"
    language: str = "en"


class BookingFormRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    book_hash: constr(strip_whitespace=True, min_length=1)
    partner_order_id: str | None = None
    user_ip: str = "127.0.0.1"
    language: str = "en"


class PollRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interval_seconds: float | None = Field(default=None, gt=0, le=30)
    max_attempts: int | None = Field(default=None, ge=1, le=200)
    deadline_seconds: float | None = Field(default=None, gt=0, le=1800)
    language: str = "en"


class BookingSessionResponse(BaseModel):
    state: str
    match_hash: str | None = None
    book_hash: str | None = None
    order_id: int | None = None
    item_id: int | None = None
    partner_order_id: str | None = None
    payment_types: list[dict[str, Any]] = Field(default_factory=list)
    data: dict[str, Any] | None = None


class BookingStatusResponse(BaseModel):
    order_id: int | str | None = None
    state: str
    vendor_status: str | None = None
    is_terminal: bool
    attempts: int = 0
    data: dict[str, Any] = Field(default_factory=dict)


class OrderResponse(BaseModel):
    order_id: int | str
    data: dict[str, Any]
