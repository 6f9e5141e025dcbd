"""Excepciones de dominio para la integración con ETG / RateHawk."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Categorías normalizadas de error expuestas al cliente."""

    VALIDATION = "validation_error"
    AUTHENTICATION = "authentication_error"
    AUTHORIZATION = "authorization_error"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit_exceeded"
    EXTERNAL_API = "external_api_error"
    DATABASE = "database_error"
    TIMEOUT = "timeout_error"
    NETWORK = "network_error"
    SERVER = "server_error"


_SUGGESTIONS = {
    ErrorCategory.VALIDATION: "Please check your input and try again",
    ErrorCategory.AUTHENTICATION: "Please check your credentials",
    ErrorCategory.AUTHORIZATION: "You do not have permission to perform this action",
    ErrorCategory.NOT_FOUND: "The requested resource was not found",
    ErrorCategory.RATE_LIMIT: "Please wait a moment before trying again",
    ErrorCategory.EXTERNAL_API: "The hotel provider is temporarily unavailable. Please try again later",
    ErrorCategory.DATABASE: "Database operation failed. Please try again later",
    ErrorCategory.TIMEOUT: "The request took too long. Please try again",
    ErrorCategory.NETWORK: "Network error. Please check your connection and try again",
    ErrorCategory.SERVER: "An unexpected error occurred. Please try again later",
}


class DomainError(Exception):
    """Clase base para todos los errores de dominio."""

    category: ErrorCategory = ErrorCategory.SERVER
    http_status: int = 500
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        code: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        http_status: int | None = None,
        retry_after: int | None = None,
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        if http_status is not None:
            self.http_status = http_status
        self._retry_after = retry_after
        super().__init__(self.message)

    @property
    def retry_after(self) -> int | None:
        """Segundos sugeridos antes de reintentar (solo para errores reintentables)."""
        if not self.is_retryable:
            return None
        if self._retry_after is not None:
            return self._retry_after
        return 60 if self.category == ErrorCategory.RATE_LIMIT else 5

    @property
    def suggestion(self) -> str:
        return _SUGGESTIONS[self.category]

    def to_envelope(self, request_id: str | None = None) -> dict[str, Any]:
        """Serializa el error al sobre `{success: false, error: {...}}`."""
        error: dict[str, Any] = {
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
            "statusCode": self.http_status,
            "isRetryable": self.is_retryable,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "suggestion": self.suggestion,
        }
        if self.retry_after is not None:
            error["retryAfter"] = self.retry_after
        if request_id:
            error["requestId"] = request_id
        if self.details:
            error["details"] = self.details
        return {"success": False, "error": error}


# === Errores de Validación ===


class ValidationError(DomainError):
    """Error de validación de datos de entrada."""

    category = ErrorCategory.VALIDATION
    http_status = 400

    def __init__(self, field: str, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(
            message=f"Validation failed on '{field}': {message}",
            code=code,
            details={"field": field},
        )
        self.field = field


class InvalidDateRangeError(ValidationError):
    """Rango de fechas inválido (checkout debe ser posterior a checkin)."""

    def __init__(self, message: str):
        super().__init__(field="checkout", message=message, code="INVALID_DATE_RANGE")


class MissingPartnerOrderIdError(ValidationError):
    def __init__(self):
        super().__init__(
            field="partner_order_id",
            message="partner_order_id is required when finishing by order_id/item_id",
            code="MISSING_PARTNER_ORDER_ID",
        )


class MissingGuestsError(ValidationError):
    def __init__(self):
        super().__init__(
            field="guests",
            message="at least one guest is required when finishing by order_id/item_id",
            code="MISSING_GUESTS",
        )


class MissingPaymentTypeError(ValidationError):
    def __init__(self):
        super().__init__(
            field="payment_type",
            message="payment_type is required",
            code="MISSING_PAYMENT_TYPE",
        )


class InvalidPaymentTypeError(ValidationError):
    """payment_type fuera del conjunto cerrado {deposit, now, hotel}."""

    def __init__(self, value: str):
        super().__init__(
            field="payment_type",
            message=f"'{value}' is not one of: deposit, now, hotel",
            code="INVALID_PAYMENT_TYPE",
        )
        self.value = value


class MissingBookHashError(ValidationError):
    def __init__(self):
        super().__init__(
            field="book_hash",
            message="book_hash is required",
            code="MISSING_BOOK_HASH",
        )


class UpstreamValidationError(DomainError):
    """ETG rechazó la petición (HTTP 400)."""

    category = ErrorCategory.VALIDATION
    http_status = 400


class AmbiguousBookingIdentifierError(ValidationError):
    """Se recibieron ambos identificadores (book_hash y order_id/item_id) o ninguno."""

    def __init__(self, message: str):
        super().__init__(field="book_hash", message=message, code="AMBIGUOUS_BOOKING_IDENTIFIER")


# === Errores de autenticación / autorización ===


class AuthenticationError(DomainError):
    category = ErrorCategory.AUTHENTICATION
    http_status = 401


class AuthorizationError(DomainError):
    category = ErrorCategory.AUTHORIZATION
    http_status = 403


# === Recursos no encontrados ===


class NotFoundError(DomainError):
    category = ErrorCategory.NOT_FOUND
    http_status = 404


class HotelNotFoundError(NotFoundError):
    """La búsqueda por hotel no devolvió resultados."""

    def __init__(self, hotel_id: str):
        super().__init__(message=f"Hotel not found or no rates available: {hotel_id}", code="HOTEL_NOT_FOUND")
        self.hotel_id = hotel_id


class SearchNotFoundError(NotFoundError):
    """La búsqueda cacheada no existe o ya expiró."""

    def __init__(self, signature: str):
        super().__init__(message="Search not found or expired", code="SEARCH_NOT_FOUND")
        self.signature = signature


# === Errores del proveedor ===


class RateLimitExceededError(DomainError):
    """Cuota del endpoint agotada aun después de esperar una ventana."""

    category = ErrorCategory.RATE_LIMIT
    http_status = 429
    is_retryable = True

    def __init__(self, endpoint: str, wait_seconds: int | None = None):
        super().__init__(
            message=f"Rate limit exceeded for {endpoint}",
            code="RATE_LIMIT_EXCEEDED",
            details={"endpoint": endpoint},
            retry_after=wait_seconds,
        )
        self.endpoint = endpoint


class ExternalApiError(DomainError):
    """El proveedor respondió con un error (5xx o estado distinto de `ok`)."""

    category = ErrorCategory.EXTERNAL_API
    http_status = 503
    is_retryable = True

    def __init__(self, message: str, code: str = "EXTERNAL_API_ERROR", *, retryable: bool = True, **kwargs):
        super().__init__(message=message, code=code, **kwargs)
        self.is_retryable = retryable


class UpstreamTimeoutError(DomainError):
    category = ErrorCategory.TIMEOUT
    http_status = 504
    is_retryable = True


class NetworkError(DomainError):
    category = ErrorCategory.NETWORK
    http_status = 503
    is_retryable = True


class DatabaseError(DomainError):
    """Fallo del almacenamiento local que no se pudo degradar."""

    category = ErrorCategory.DATABASE
    http_status = 503


class UpstreamRequestError(DomainError):
    """La petición no pudo construirse o enviarse."""

    category = ErrorCategory.SERVER
    http_status = 500


# === Errores de reserva ===


class PrebookFailedError(DomainError):
    """El prebook falló: precio o disponibilidad cambiaron. Se debe buscar de nuevo."""

    category = ErrorCategory.EXTERNAL_API
    http_status = 409

    def __init__(self, match_hash: str, reason: str, **kwargs):
        super().__init__(
            message=f"Prebook failed, please search again: {reason}",
            code="PREBOOK_FAILED",
            **kwargs,
        )
        self.match_hash = match_hash


class BookingStillProcessingError(DomainError):
    """La reserva sigue en `processing` después del límite de sondeo."""

    category = ErrorCategory.EXTERNAL_API
    http_status = 202
    is_retryable = True

    def __init__(self, order_id: int | str, attempts: int):
        super().__init__(
            message=f"Booking {order_id} is still processing after {attempts} status checks, check back later",
            code="BOOKING_STILL_PROCESSING",
            details={"order_id": order_id, "attempts": attempts},
            retry_after=30,
        )
        self.order_id = order_id
        self.attempts = attempts


class InvalidBookingTransitionError(DomainError):
    """El estado actual de la sesión no permite la operación."""

    category = ErrorCategory.VALIDATION
    http_status = 409

    def __init__(self, current_state: str, operation: str):
        super().__init__(
            message=f"Cannot {operation}: booking is in state '{current_state}'",
            code="INVALID_BOOKING_TRANSITION",
        )
        self.current_state = current_state
        self.operation = operation
