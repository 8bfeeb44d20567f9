# pricesync/storage/retry.py

"""Exponential-backoff retry for a narrow class of transient store errors."""

import logging
import sqlite3
import time
from collections.abc import Callable
from typing import TypeVar

from pricesync.config.settings import Settings

logger = logging.getLogger("pricesync.storage")

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """True for backend errors that clear up on their own.

    Only ``sqlite3.OperationalError`` whose message carries one of
    ``Settings.TRANSIENT_STORE_ERRORS`` qualifies, e.g. a schema that a
    concurrent migration has not made visible yet, or a locked file.
    """
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in Settings.TRANSIENT_STORE_ERRORS)


def with_retry(
    operation: Callable[[], T],
    name: str,
    is_retryable: Callable[[BaseException], bool] = is_transient,
    max_attempts: int | None = None,
    base_delay: float | None = None,
) -> T:
    """Run ``operation``, retrying retryable failures with backoff.

    The delay doubles after each failed attempt starting at
    ``base_delay``.  Non-retryable errors and the last failure propagate
    unchanged.
    """
    attempts = max_attempts or Settings.STORE_MAX_RETRIES
    delay = (
        base_delay if base_delay is not None
        else Settings.STORE_RETRY_BASE_DELAY
    )
    attempt = 1
    while True:
        try:
            result = operation()
        except Exception as exc:
            if attempt >= attempts or not is_retryable(exc):
                raise
            wait = delay * (2 ** (attempt - 1))
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                name,
                attempt,
                attempts,
                exc,
                wait,
            )
            time.sleep(wait)
            attempt += 1
            continue
        if attempt > 1:
            logger.info("%s succeeded on attempt %d", name, attempt)
        return result
