from abc import ABC, abstractmethod
from typing import Any

from app.domain.value_objects.finish_request import FinishRequest
from app.domain.value_objects.search_params import SearchParams


class HotelApiGateway(ABC):
    """
    Puerto hacia la API B2B de ETG.

    Cada método corresponde a una llamada HTTP y retorna el campo `data`
    del sobre de respuesta. Los fallos se reportan como `DomainError`.
    """

    @abstractmethod
    async def get_hotel_information(self, hotel_id: str, language: str = "en") -> dict[str, Any]:
        pass

    @abstractmethod
    async def search_hotels_by_region(self, params: SearchParams) -> dict[str, Any]:
        """
        Búsqueda por región.

        Cada hotel del resultado lleva `match_hash` (el de su primera tarifa).
        """
        pass

    @abstractmethod
    async def get_hotel_with_rates(self, hotel_id: str, params: SearchParams) -> dict[str, Any]:
        """Tarifas en vivo de un hotel; `HotelNotFoundError` si no hay resultados."""
        pass

    @abstractmethod
    async def prebook_hotel(self, match_hash: str, residency: str = "us", language: str = "en") -> dict[str, Any]:
        pass

    @abstractmethod
    async def get_booking_form(
        self,
        book_hash: str,
        partner_order_id: str,
        language: str = "en",
        user_ip: str = "127.0.0.1",
    ) -> dict[str, Any]:
        pass

    @abstractmethod
    async def finish_booking(self, request: FinishRequest) -> dict[str, Any]:
        pass

    @abstractmethod
    async def get_booking_status(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        pass

    @abstractmethod
    async def get_order_info(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        pass

    @abstractmethod
    async def cancel_order(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        pass

    @abstractmethod
    async def get_order_documents(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        """Documentos de la orden (voucher, factura, confirmación)."""
        pass

    @abstractmethod
    async def search_regions(self, query: str, language: str = "en") -> dict[str, Any]:
        """Autocompletado de destinos (multicomplete)."""
        pass
