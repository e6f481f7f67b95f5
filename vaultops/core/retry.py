"""Exponential-backoff retry wrapper for single store operations."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from vaultops.vault.errors import RemoteError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, RemoteError):
        return False
    return exc.status == 0 or exc.status == 429 or exc.status >= 500


def invoke_with_retry(
    operation: Callable[[], T],
    *,
    max_attempts: int = 5,
    initial_delay_seconds: float = 1.0,
    should_retry: Callable[[BaseException], bool] = is_transient,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    if initial_delay_seconds < 0:
        raise ValueError("initial_delay_seconds must be >= 0")

    attempt = 1
    while True:
        try:
            return operation()
        except Exception as exc:
            if attempt >= max_attempts or not should_retry(exc):
                raise
            delay = initial_delay_seconds * (2 ** (attempt - 1))
            LOGGER.warning(
                "operation failed attempt=%s/%s retry_in=%.2fs error=%s",
                attempt,
                max_attempts,
                delay,
                exc,
            )
            sleep(delay)
            attempt += 1
