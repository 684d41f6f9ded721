"""
Resilient store accessor.

Every store operation goes through retry_on_store_error. Transient
connection-level failures (administrative disconnects, refused/reset
connections, a locked sqlite file) are retried with a fixed delay schedule;
anything else propagates on first occurrence, unchanged.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from config.constants import (
    RETRYABLE_STORE_ERROR_CODES,
    RETRYABLE_STORE_ERROR_MESSAGES,
    STORE_RETRY_DELAYS,
    STORE_RETRY_JITTER,
    STORE_RETRY_MAX_ATTEMPTS,
)
from config.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Attributes drivers use to expose an error code
# (asyncpg/pg: code, psycopg2: pgcode, psycopg3: sqlstate, sqlite3: sqlite_errorname)
_ERROR_CODE_ATTRIBUTES = ("code", "pgcode", "sqlstate", "sqlite_errorname")


def _error_code(error: BaseException) -> Optional[str]:
    for attr in _ERROR_CODE_ATTRIBUTES:
        value = getattr(error, attr, None)
        if isinstance(value, str) and value:
            return value
    return None


def is_retryable_store_error(error: BaseException) -> bool:
    """True if the error looks like a transient connection failure."""
    code = _error_code(error)
    if code and code.upper() in RETRYABLE_STORE_ERROR_CODES:
        return True

    message = str(error).lower()
    return any(fragment in message for fragment in RETRYABLE_STORE_ERROR_MESSAGES)


def apply_jitter(delay: float, jitter: float = STORE_RETRY_JITTER) -> float:
    """Spread delay uniformly over [delay * (1 - jitter), delay * (1 + jitter)]."""
    return delay * (1 + random.uniform(-jitter, jitter))


def retry_delay(attempt: int, delays: Sequence[float], add_jitter: bool = True) -> float:
    """Delay before retry number `attempt` (0-based); the last entry is reused."""
    if not delays:
        return 0.0
    delay = delays[min(attempt, len(delays) - 1)]
    return apply_jitter(delay) if add_jitter else delay


async def retry_on_store_error(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = STORE_RETRY_MAX_ATTEMPTS,
    delays: Sequence[float] = STORE_RETRY_DELAYS,
    add_jitter: bool = True,
    operation: str = "store operation",
) -> T:
    """
    Run a store operation, retrying transient failures.

    Args:
        fn: Zero-argument callable returning an awaitable; called once per attempt.
        max_attempts: Total attempts including the first.
        delays: Seconds to wait before each retry.
        add_jitter: Apply +/-25% jitter to each delay.
        operation: Name used in log messages.

    Returns:
        Whatever fn's awaitable returns.

    Raises:
        The first non-transient error, or the last transient error once
        max_attempts is exhausted.
    """
    attempt = 0
    while True:
        try:
            result = await fn()
        except Exception as e:
            attempt += 1
            if not is_retryable_store_error(e):
                raise
            if attempt >= max_attempts:
                logger.error(f"{operation} failed after {attempt} attempts: {e}")
                raise

            delay = retry_delay(attempt - 1, delays, add_jitter)
            logger.warning(
                f"{operation} hit a transient error (attempt {attempt}/{max_attempts}), "
                f"retrying in {delay:.1f}s: {e}"
            )
            await asyncio.sleep(delay)
            continue

        if attempt > 0:
            logger.info(f"{operation} succeeded after {attempt} retries")
        return result
