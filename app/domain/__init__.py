"""
Capa de Dominio - Integración de reservas de hotel con ETG.

Esta capa contiene la lógica de negocio pura, sin dependencias de frameworks.

Estructura:
- entities/: Entidades del dominio (BookingSession, CacheEntry)
- value_objects/: Objetos de valor inmutables (SearchParams, PaymentType, FinishRequest)
- errors.py: Excepciones específicas del dominio
"""

from app.domain.entities import BookingSession, BookingState, CacheClass, CacheEntry
from app.domain.errors import DomainError, ErrorCategory
from app.domain.value_objects import (
    FinishByBookHash,
    FinishByOrderItem,
    PaymentType,
    SearchParams,
    StayDates,
)

__all__ = [
    # Entities
    "BookingSession",
    "BookingState",
    "CacheClass",
    "CacheEntry",
    # Errors
    "DomainError",
    "ErrorCategory",
    # Value Objects
    "FinishByBookHash",
    "FinishByOrderItem",
    "PaymentType",
    "SearchParams",
    "StayDates",
]
