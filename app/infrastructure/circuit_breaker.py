"""
Circuit Breaker configuration for ETG API calls.

The breaker wraps only the network send: transport failures (timeouts,
connection errors) count towards ``fail_max``; HTTP error responses do not.
The failure that trips the breaker is re-raised as-is; only calls made
while the circuit is open raise ``CircuitBreakerError``.

Circuit Breaker Pattern:
- CLOSED: Normal operation, requests pass through
- OPEN: Too many failures, requests fail immediately without being sent
- HALF_OPEN: Testing if service recovered, one trial request allowed
"""

import logging

from pybreaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerListener

logger = logging.getLogger(__name__)


def log_circuit_state_change(breaker_name: str, old_state: str, new_state: str):
    """Log circuit breaker state changes for monitoring and alerting."""
    logger.warning(
        "Circuit breaker state changed",
        extra={
            "breaker_name": breaker_name,
            "old_state": old_state,
            "new_state": new_state,
        }
    )


class LoggingCircuitBreakerListener(CircuitBreakerListener):
    """Listener for circuit breaker state changes."""

    def __init__(self, name: str):
        self.name = name

    def state_change(self, cb, old_state, new_state):
        old_name = old_state.name if old_state is not None else None
        log_circuit_state_change(self.name, old_name, new_state.name)

    def failure(self, cb, exc):
        logger.info(
            "Circuit breaker recorded failure",
            extra={"breaker_name": self.name, "fail_counter": cb.fail_counter, "error": str(exc)},
        )


def build_etg_breaker(fail_max: int = 5, reset_timeout: int = 60, name: str = "etg") -> CircuitBreaker:
    """One breaker per ETG client instance."""
    return CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        name=f"{name}_circuit_breaker",
        listeners=[LoggingCircuitBreakerListener(name)],
        throw_new_error_on_trip=False,
    )


__all__ = [
    "build_etg_breaker",
    "CircuitBreakerError",
    "LoggingCircuitBreakerListener",
]
