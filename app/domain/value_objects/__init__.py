"""Value Objects del dominio de reservas de hotel."""

from app.domain.value_objects.finish_request import (
    FinishByBookHash,
    FinishByOrderItem,
    FinishRequest,
    finish_request_from_payload,
)
from app.domain.value_objects.payment_type import PaymentType
from app.domain.value_objects.search_params import SearchParams, normalize_residency
from app.domain.value_objects.stay_dates import StayDates

__all__ = [
    "FinishByBookHash",
    "FinishByOrderItem",
    "FinishRequest",
    "finish_request_from_payload",
    "PaymentType",
    "SearchParams",
    "StayDates",
    "normalize_residency",
]
