"""Value Object PaymentType - tipo de pago aceptado por ETG."""

from enum import Enum

from app.domain.errors import InvalidPaymentTypeError, MissingPaymentTypeError


class PaymentType(str, Enum):
    """Conjunto cerrado de tipos de pago."""

    DEPOSIT = "deposit"
    NOW = "now"
    HOTEL = "hotel"

    @classmethod
    def normalize(cls, value: "str | PaymentType | None") -> "PaymentType":
        """
        Normaliza mayúsculas y espacios antes de validar.

        " Deposit " -> PaymentType.DEPOSIT; valores vacíos o desconocidos
        se rechazan localmente.
        """
        if isinstance(value, PaymentType):
            return value
        if value is None or not str(value).strip():
            raise MissingPaymentTypeError()
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidPaymentTypeError(str(value)) from None
