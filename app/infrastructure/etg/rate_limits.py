"""
Cuotas por endpoint impuestas por ETG (B2B API v3).

Las claves son rutas relativas a ``api/b2b/v3/`` con barra final.
Los endpoints ausentes de la tabla no tienen límite.
"""

from dataclasses import dataclass

API_PREFIX = "api/b2b/v3/"


@dataclass(frozen=True)
class RateLimitRule:
    requests_number: int
    seconds_number: int
    is_limited: bool = True


_PER_MINUTE_10 = RateLimitRule(requests_number=10, seconds_number=60)
_PER_MINUTE_30 = RateLimitRule(requests_number=30, seconds_number=60)
_PER_DAY_100 = RateLimitRule(requests_number=100, seconds_number=86400)

ETG_RATE_LIMITS: dict[str, RateLimitRule] = {
    # Búsquedas
    "search/serp/region/": _PER_MINUTE_10,
    "search/serp/geo/": _PER_MINUTE_10,
    "search/hp/": _PER_MINUTE_10,
    "search/serp/hotels/": RateLimitRule(requests_number=150, seconds_number=60),
    "search/multicomplete/": _PER_MINUTE_30,
    # Contenido
    "hotel/info/": _PER_MINUTE_30,
    # Reserva
    "hotel/prebook/": _PER_MINUTE_30,
    "hotel/order/booking/form/": _PER_MINUTE_30,
    "hotel/order/booking/finish/": _PER_MINUTE_30,
    "hotel/order/booking/finish/status/": RateLimitRule(requests_number=30, seconds_number=60, is_limited=False),
    "hotel/order/info/": _PER_MINUTE_30,
    "hotel/order/cancel/": _PER_MINUTE_30,
    "hotel/order/document/voucher/download/": _PER_MINUTE_30,
    "hotel/order/document/info_invoice/download/": _PER_MINUTE_30,
    "hotel/order/document/single_act/download/": _PER_MINUTE_30,
    # Dumps
    "hotel/info/dump/": _PER_DAY_100,
    "hotel/info/incremental_dump/": _PER_DAY_100,
    "hotel/incremental_reviews/dump/": _PER_DAY_100,
    "hotel/custom/dump/": _PER_DAY_100,
    "hotel/poi/dump/": _PER_DAY_100,
}


def normalize_endpoint(endpoint: str) -> str:
    """'/hotel/info' -> 'hotel/info/'; también acepta el prefijo api/b2b/v3/."""
    path = endpoint.strip().lstrip("/")
    if path.startswith(API_PREFIX):
        path = path[len(API_PREFIX):]
    if not path.endswith("/"):
        path += "/"
    return path


def get_rate_limit_rule(endpoint: str, limits: dict[str, RateLimitRule] | None = None) -> RateLimitRule | None:
    """Regla configurada para el endpoint, o None si no tiene límite."""
    table = ETG_RATE_LIMITS if limits is None else limits
    rule = table.get(normalize_endpoint(endpoint))
    if rule is None or not rule.is_limited:
        return None
    return rule
