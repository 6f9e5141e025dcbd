from itertools import count
from typing import Any

from app.application.interfaces.hotel_api import HotelApiGateway
from app.domain.errors import ExternalApiError, HotelNotFoundError, NotFoundError
from app.domain.value_objects.finish_request import FinishByBookHash, FinishRequest
from app.domain.value_objects.search_params import SearchParams

_DESTINATIONS = [
    {"region_id": 4898, "label": "Las Vegas", "type": "City", "country_code": "US", "country_name": "United States"},
    {"region_id": 2011, "label": "Los Angeles", "type": "City", "country_code": "US", "country_name": "United States"},
    {"region_id": 2114, "label": "Nevada", "type": "Region", "country_code": "US", "country_name": "United States"},
    {"region_id": 70308, "label": "New York", "type": "City", "country_code": "US", "country_name": "United States"},
    {"region_id": 6053839, "label": "Las Vegas Strip", "type": "Neighborhood", "country_code": "US", "country_name": "United States"},
    {"region_id": 76876, "label": "London", "type": "City", "country_code": "GB", "country_name": "United Kingdom"},
]


class StubEtgGateway(HotelApiGateway):
    """
    Gateway ETG determinista para modo in-memory y tests.

    - Cada región devuelve `hotels_per_region` hoteles con una tarifa.
    - Una orden pasa de `processing` a `confirmed` tras `polls_until_terminal`
      consultas de estado.
    - `failing_hotel_ids` simula fallos de /hotel/info/.
    """

    def __init__(
        self,
        hotels_per_region: int = 3,
        polls_until_terminal: int = 2,
        terminal_status: str = "confirmed",
        failing_hotel_ids: set[str] | None = None,
    ) -> None:
        self.hotels_per_region = hotels_per_region
        self.polls_until_terminal = polls_until_terminal
        self.terminal_status = terminal_status
        self.failing_hotel_ids = set(failing_hotel_ids or ())
        self.calls: list[tuple[str, Any]] = []
        self._order_ids = count(100001)
        self._orders: dict[int, dict[str, Any]] = {}
        self._forms: dict[int, dict[str, Any]] = {}

    def calls_to(self, method: str) -> list[Any]:
        return [args for name, args in self.calls if name == method]

    @staticmethod
    def _hotel(hotel_id: str, params: SearchParams, index: int) -> dict[str, Any]:
        nightly = 120 + index * 35
        return {
            "id": hotel_id,
            "rates": [
                {
                    "match_hash": f"mh-{hotel_id}-{params.stay.checkin.isoformat()}",
                    "room_name": "Standard Double Room",
                    "daily_prices": [f"{nightly:.2f}"] * params.stay.nights,
                    "payment_options": {
                        "payment_types": [
                            {
                                "type": "deposit",
                                "amount": f"{nightly * params.stay.nights:.2f}",
                                "currency_code": params.currency,
                            }
                        ]
                    },
                }
            ],
        }

    async def get_hotel_information(self, hotel_id: str, language: str = "en") -> dict[str, Any]:
        self.calls.append(("get_hotel_information", (hotel_id, language)))
        if hotel_id in self.failing_hotel_ids:
            raise ExternalApiError(f"Get hotel info {hotel_id}: upstream unavailable", code="UPSTREAM_SERVER_ERROR")
        return {
            "id": hotel_id,
            "name": f"Stub Hotel {hotel_id}",
            "address": "3570 S Las Vegas Blvd",
            "star_rating": 4,
            "images": [f"https://cdn.example.test/{hotel_id}/{{size}}/1.jpg"],
            "amenity_groups": [{"group_name": "General", "amenities": ["Wi-Fi", "Pool"]}],
            "language": language,
        }

    async def search_hotels_by_region(self, params: SearchParams) -> dict[str, Any]:
        self.calls.append(("search_hotels_by_region", params))
        hotels = [
            self._hotel(f"stub_hotel_{params.region_id}_{index}", params, index)
            for index in range(1, self.hotels_per_region + 1)
        ]
        for hotel in hotels:
            hotel["match_hash"] = hotel["rates"][0]["match_hash"]
        return {
            "hotels": hotels,
            "search_id": f"search-{params.signature()[:12]}",
            "region_id": params.region_id,
            "total_hotels": len(hotels),
        }

    async def get_hotel_with_rates(self, hotel_id: str, params: SearchParams) -> dict[str, Any]:
        self.calls.append(("get_hotel_with_rates", (hotel_id, params)))
        if not hotel_id.startswith("stub_hotel_"):
            raise HotelNotFoundError(hotel_id)
        hotel = self._hotel(hotel_id, params, 1)
        hotel["match_hash"] = hotel["rates"][0]["match_hash"]
        return hotel

    async def prebook_hotel(self, match_hash: str, residency: str = "us", language: str = "en") -> dict[str, Any]:
        self.calls.append(("prebook_hotel", (match_hash, residency, language)))
        if not match_hash.startswith("mh-"):
            raise ExternalApiError("Prebook rate: rate not found", code="UPSTREAM_ERROR", retryable=False)
        return {"hotels": [{"rates": [{"book_hash": f"bh-{match_hash[3:]}"}]}], "changes": {"price_changed": False}}

    async def get_booking_form(
        self,
        book_hash: str,
        partner_order_id: str,
        language: str = "en",
        user_ip: str = "127.0.0.1",
    ) -> dict[str, Any]:
        self.calls.append(("get_booking_form", (book_hash, partner_order_id)))
        order_id = next(self._order_ids)
        form = {
            "order_id": order_id,
            "item_id": order_id + 500000,
            "partner_order_id": partner_order_id,
            "payment_types": [{"type": "deposit", "amount": "240.00", "currency_code": "USD"}],
        }
        self._forms[order_id] = form
        return form

    async def finish_booking(self, request: FinishRequest) -> dict[str, Any]:
        self.calls.append(("finish_booking", request))
        if isinstance(request, FinishByBookHash):
            order_id = next(self._order_ids)
        else:
            order_id = request.order_id
            if order_id not in self._forms:
                raise NotFoundError(f"Finish booking: order {order_id} not found", code="UPSTREAM_NOT_FOUND")
        self._orders[order_id] = {"status": "processing", "polls": 0, "payment_type": request.payment_type.value}
        return {"order_id": order_id, "status": "processing"}

    def _order(self, order_id: int | str) -> dict[str, Any]:
        order = self._orders.get(int(order_id))
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", code="UPSTREAM_NOT_FOUND")
        return order

    async def get_booking_status(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        self.calls.append(("get_booking_status", order_id))
        order = self._order(order_id)
        if order["status"] == "processing":
            order["polls"] += 1
            if order["polls"] >= self.polls_until_terminal:
                order["status"] = self.terminal_status
        return {"order_id": int(order_id), "status": order["status"]}

    async def get_order_info(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        self.calls.append(("get_order_info", order_id))
        order = self._order(order_id)
        return {"order_id": int(order_id), "status": order["status"], "payment_type": order["payment_type"]}

    async def cancel_order(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        self.calls.append(("cancel_order", order_id))
        order = self._order(order_id)
        order["status"] = "cancelled"
        return {"order_id": int(order_id), "status": "cancelled"}

    async def get_order_documents(self, order_id: int | str, language: str = "en") -> dict[str, Any]:
        self.calls.append(("get_order_documents", order_id))
        self._order(order_id)
        base = "https://stub.etg.local/documents"
        return {
            "order_id": int(order_id),
            "voucher_url": f"{base}/vouchers/{order_id}.pdf",
            "invoice_url": f"{base}/invoices/{order_id}.pdf",
            "confirmation_url": f"{base}/confirmations/{order_id}.pdf",
        }

    async def search_regions(self, query: str, language: str = "en") -> dict[str, Any]:
        self.calls.append(("search_regions", (query, language)))
        needle = query.strip().lower()
        return {"regions": [dict(item) for item in _DESTINATIONS if needle in item["label"].lower()]}
