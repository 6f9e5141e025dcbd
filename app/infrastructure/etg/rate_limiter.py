"""
Control de admisión por endpoint con ventana deslizante.

Cada endpoint limitado tiene un ``RateLimitTracker`` con los timestamps de
las peticiones enviadas dentro de la ventana. Los trackers pertenecen a la
instancia del limiter (no hay estado global) y los comparten todos los
llamadores de esa instancia.

Flujo de ``wait_for_slot``:
- consultar cuota (``check_limit``, solo lectura)
- si está agotada, esperar hasta que expire el timestamp más antiguo y
  volver a consultar una vez
- si sigue agotada, ``RateLimitExceededError``

``acquire`` además registra la petición. El cliente ETG registra por su
cuenta, dentro del circuit breaker y justo antes del envío, para que un
circuito abierto no consuma cupo.
"""

import asyncio
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

from app.application.interfaces.clock import Clock, SystemClock
from app.domain.errors import RateLimitExceededError
from app.infrastructure.etg.rate_limits import (
    ETG_RATE_LIMITS,
    RateLimitRule,
    get_rate_limit_rule,
    normalize_endpoint,
)

logger = logging.getLogger(__name__)

WAIT_BUFFER_SECONDS = 0.1

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RateLimitTracker:
    window_seconds: int
    max_requests: int
    timestamps: deque = field(default_factory=deque)

    def in_window(self, now: float) -> list[float]:
        cutoff = now - self.window_seconds
        return [ts for ts in self.timestamps if ts > cutoff]

    def prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self.timestamps and self.timestamps[0] <= cutoff:
            self.timestamps.popleft()


@dataclass(frozen=True)
class RateLimitCheck:
    allowed: bool
    remaining: float
    wait_seconds: int = 0
    limit: int | None = None
    window_seconds: int | None = None
    reset_at: datetime | None = None


class EndpointRateLimiter:
    def __init__(
        self,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
        limits: dict[str, RateLimitRule] | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._sleep = sleep or asyncio.sleep
        self._limits = limits
        self._trackers: dict[str, RateLimitTracker] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _rule(self, endpoint: str) -> RateLimitRule | None:
        return get_rate_limit_rule(endpoint, self._limits)

    def _tracker(self, key: str, rule: RateLimitRule) -> RateLimitTracker:
        tracker = self._trackers.get(key)
        if tracker is None:
            tracker = RateLimitTracker(window_seconds=rule.seconds_number, max_requests=rule.requests_number)
            self._trackers[key] = tracker
        return tracker

    def check_limit(self, endpoint: str) -> RateLimitCheck:
        """Cuota disponible para el endpoint. No modifica el estado."""
        rule = self._rule(endpoint)
        if rule is None:
            return RateLimitCheck(allowed=True, remaining=math.inf)

        now = self._clock.timestamp()
        tracker = self._trackers.get(normalize_endpoint(endpoint))
        current = tracker.in_window(now) if tracker else []
        remaining = rule.requests_number - len(current)

        if remaining > 0:
            reset_at = None
            if current:
                reset_at = datetime.fromtimestamp(current[0] + rule.seconds_number, tz=timezone.utc)
            return RateLimitCheck(
                allowed=True,
                remaining=remaining,
                limit=rule.requests_number,
                window_seconds=rule.seconds_number,
                reset_at=reset_at,
            )

        oldest = current[0]
        reset_ts = oldest + rule.seconds_number
        return RateLimitCheck(
            allowed=False,
            remaining=0,
            wait_seconds=max(1, math.ceil(reset_ts - now)),
            limit=rule.requests_number,
            window_seconds=rule.seconds_number,
            reset_at=datetime.fromtimestamp(reset_ts, tz=timezone.utc),
        )

    def record_request(self, endpoint: str) -> None:
        """Registra una petición enviada. Solo se llama tras un envío real."""
        rule = self._rule(endpoint)
        if rule is None:
            return
        now = self._clock.timestamp()
        tracker = self._tracker(normalize_endpoint(endpoint), rule)
        tracker.prune(now)
        tracker.timestamps.append(now)

    async def wait_for_limit(self, endpoint: str) -> RateLimitCheck:
        check = self.check_limit(endpoint)
        if check.allowed:
            return check
        logger.warning(
            "ETG rate limit reached, waiting",
            extra={"endpoint": normalize_endpoint(endpoint), "wait_seconds": check.wait_seconds},
        )
        await self._sleep(check.wait_seconds + WAIT_BUFFER_SECONDS)
        return self.check_limit(endpoint)

    async def wait_for_slot(self, endpoint: str) -> RateLimitCheck:
        """
        Espera a que haya cupo para el endpoint, sin registrar la petición.

        Espera como máximo una ventana; si aun así no hay cupo, lanza
        RateLimitExceededError. El llamador debe invocar ``record_request``
        sin ceder el event loop entre el retorno y el envío.
        """
        if self._rule(endpoint) is None:
            return RateLimitCheck(allowed=True, remaining=math.inf)

        key = normalize_endpoint(endpoint)
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            check = self.check_limit(endpoint)
            if not check.allowed:
                check = await self.wait_for_limit(endpoint)
            if not check.allowed:
                raise RateLimitExceededError(key, wait_seconds=check.wait_seconds)
            return check

    async def acquire(self, endpoint: str) -> RateLimitCheck:
        """Reserva y registra un cupo para una petición que está por enviarse."""
        check = await self.wait_for_slot(endpoint)
        self.record_request(endpoint)
        return check

    def status(self, endpoint: str) -> dict:
        """Snapshot del estado de un endpoint (para diagnóstico)."""
        key = normalize_endpoint(endpoint)
        rule = self._rule(endpoint)
        if rule is None:
            return {"endpoint": key, "limited": False}
        now = self._clock.timestamp()
        tracker = self._trackers.get(key)
        current = len(tracker.in_window(now)) if tracker else 0
        check = self.check_limit(endpoint)
        return {
            "endpoint": key,
            "limited": True,
            "limit": rule.requests_number,
            "window_seconds": rule.seconds_number,
            "current": current,
            "remaining": max(0, rule.requests_number - current),
            "reset_at": check.reset_at.isoformat() if check.reset_at else None,
        }

    def all_statuses(self) -> list[dict]:
        """Estado de todos los endpoints configurados y de los que tengan peticiones registradas."""
        table = ETG_RATE_LIMITS if self._limits is None else self._limits
        endpoints = {normalize_endpoint(endpoint) for endpoint in table} | set(self._trackers)
        return [self.status(endpoint) for endpoint in sorted(endpoints)]

    def clear(self, endpoint: str | None = None) -> None:
        if endpoint is None:
            self._trackers.clear()
        else:
            self._trackers.pop(normalize_endpoint(endpoint), None)
