"""
Retry utilities for transient database failures on cache writes.

Two kinds of failure are retried:
- lock contention (MySQL deadlock / lock wait timeout, SQLite "database is locked")
- unique-key races on upsert: two writers miss the UPDATE and both INSERT;
  the loser retries and takes the UPDATE path
"""

import asyncio
import logging
from functools import wraps
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar('T')

MYSQL_DEADLOCK_ERROR = "1213"
MYSQL_LOCK_WAIT_TIMEOUT = "1205"
SQLITE_LOCKED = "database is locked"


def is_lock_contention(error: Exception) -> bool:
    if isinstance(error, (OperationalError, DBAPIError)) and not isinstance(error, IntegrityError):
        error_str = str(error)
        return (
            MYSQL_DEADLOCK_ERROR in error_str
            or MYSQL_LOCK_WAIT_TIMEOUT in error_str
            or SQLITE_LOCKED in error_str
        )
    return False


def is_transient_error(error: Exception) -> bool:
    """True when the whole unit of work can safely be run again."""
    return isinstance(error, IntegrityError) or is_lock_contention(error)


async def retry_on_transient(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.05,
) -> T:
    """
    Run ``func`` again when it fails with a transient database error.

    Uses exponential backoff: base_delay * (2 ** attempt). Non-transient
    errors and the last transient error are re-raised unchanged.
    """
    for attempt in range(max_attempts):
        try:
            return await func()
        except Exception as e:
            if not is_transient_error(e) or attempt == max_attempts - 1:
                if is_transient_error(e):
                    logger.error(
                        "Transient database error persists after max retries",
                        extra={"attempts": max_attempts, "error": str(e)},
                    )
                raise

            delay = base_delay * (2 ** attempt)
            logger.warning(
                "Transient database error, retrying",
                extra={
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "retry_delay": delay,
                    "error": str(e),
                }
            )
            await asyncio.sleep(delay)

    raise RuntimeError("Unexpected state in retry_on_transient")


def with_transient_retry(max_attempts: int = 3, base_delay: float = 0.05):
    """
    Decorator form of ``retry_on_transient``.

    The decorated coroutine must be a complete unit of work (its own
    session/transaction), since it is re-run from the start.
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            async def execute():
                return await func(*args, **kwargs)

            return await retry_on_transient(execute, max_attempts, base_delay)

        return wrapper
    return decorator
