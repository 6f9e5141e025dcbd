import asyncio
import logging
from typing import Any, Awaitable, Callable

from app.application.interfaces.hotel_api import HotelApiGateway
from app.application.services.cache_store import CacheStore, hotel_static_key
from app.domain.entities.cache_entry import CacheClass
from app.domain.errors import DomainError


def _hotel_id(hotel: dict[str, Any]) -> str | None:
    value = hotel.get("id") or hotel.get("hotel_id")
    return str(value) if value else None


class EnrichHotelsUseCase:
    """
    Combina hoteles con tarifas en vivo con su información estática cacheada.

    Cada hotel recibe `static_vm` (payload estático tal cual) y
    `has_static_info`. Un fallo de un hotel no interrumpe el lote.
    """

    def __init__(
        self,
        hotel_api: HotelApiGateway,
        cache_store: CacheStore,
        batch_size: int = 5,
        batch_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._hotel_api = hotel_api
        self._cache = cache_store
        self._batch_size = max(1, batch_size)
        self._batch_delay = batch_delay_seconds
        self._sleep = sleep or asyncio.sleep
        self._logger = logging.getLogger(__name__)

    async def get_static_info(self, hotel_id: str, language: str = "en") -> tuple[dict[str, Any], bool]:
        """Información estática cache-aside. Retorna `(payload, from_cache)`."""
        return await self._cache.get_or_fetch(
            CacheClass.HOTEL_STATIC,
            hotel_static_key(hotel_id, language),
            lambda: self._hotel_api.get_hotel_information(hotel_id, language),
        )

    @staticmethod
    def _attach(hotel: dict[str, Any], static_info: dict[str, Any] | None) -> None:
        hotel["static_vm"] = static_info
        hotel["has_static_info"] = static_info is not None

    async def execute(self, hotels: list[dict[str, Any]], language: str = "en") -> list[dict[str, Any]]:
        enriched = [dict(hotel) for hotel in hotels]
        pending: list[int] = []

        for index, hotel in enumerate(enriched):
            hotel_id = _hotel_id(hotel)
            if hotel_id is None:
                self._attach(hotel, None)
                continue
            entry = await self._cache.get(CacheClass.HOTEL_STATIC, hotel_static_key(hotel_id, language))
            if entry is not None:
                self._attach(hotel, entry.payload)
            else:
                pending.append(index)

        batches = [pending[i:i + self._batch_size] for i in range(0, len(pending), self._batch_size)]
        for number, batch in enumerate(batches):
            results = await asyncio.gather(
                *(self.get_static_info(_hotel_id(enriched[i]), language) for i in batch),
                return_exceptions=True,
            )
            for index, result in zip(batch, results):
                hotel = enriched[index]
                if isinstance(result, DomainError):
                    self._logger.warning(
                        "Static info unavailable, hotel returned without enrichment",
                        extra={"hotel_id": _hotel_id(hotel), "error_code": result.code, "error": result.message},
                    )
                    self._attach(hotel, None)
                elif isinstance(result, BaseException):
                    raise result
                else:
                    payload, _ = result
                    self._attach(hotel, payload)
            if number < len(batches) - 1:
                await self._sleep(self._batch_delay)

        self._logger.info(
            "Hotels enriched",
            extra={
                "hotels": len(enriched),
                "fetched": len(pending),
                "without_static_info": sum(1 for hotel in enriched if not hotel["has_static_info"]),
            },
        )
        return enriched
