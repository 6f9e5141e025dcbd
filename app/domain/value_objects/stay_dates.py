"""Value Object StayDates - rango checkin/checkout de una estancia."""

from dataclasses import dataclass
from datetime import date

from app.domain.errors import InvalidDateRangeError, ValidationError


def _parse(field: str, value: date | str | None) -> date:
    if value is None or value == "":
        code = "MISSING_CHECKIN" if field == "checkin" else "MISSING_CHECKOUT"
        raise ValidationError(field=field, message=f"{field} is required", code=code)
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(
            field=field,
            message=f"invalid date '{value}' (format: YYYY-MM-DD)",
            code="INVALID_DATE_FORMAT",
        ) from None


@dataclass(frozen=True)
class StayDates:
    """
    Value Object inmutable que representa las fechas de una estancia.

    Attributes:
        checkin: Fecha de entrada.
        checkout: Fecha de salida, estrictamente posterior a checkin.
    """

    checkin: date
    checkout: date

    def __post_init__(self) -> None:
        if self.checkout <= self.checkin:
            raise InvalidDateRangeError(
                f"checkout ({self.checkout.isoformat()}) must be after checkin ({self.checkin.isoformat()})"
            )

    @property
    def nights(self) -> int:
        """Número de noches de la estancia."""
        return (self.checkout - self.checkin).days

    @classmethod
    def parse(cls, checkin: date | str | None, checkout: date | str | None) -> "StayDates":
        """Factory que acepta fechas ISO (YYYY-MM-DD) o `date`."""
        return cls(checkin=_parse("checkin", checkin), checkout=_parse("checkout", checkout))

    def __str__(self) -> str:
        return f"{self.checkin.isoformat()} -> {self.checkout.isoformat()}"
