from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from .errors import RequestTimeoutError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE = (RequestTimeoutError, TransportError)


def with_retries(
        call: Callable[[], T],
        *,
        attempts: int = 3,
        backoff_s: float = 0.5,
        retry_on: tuple[type[Exception], ...] = RETRYABLE,
        sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``call`` again on timeouts and connection failures.

    HttpClient never retries on its own; this is the opt-in layer for
    callers that want it. The delay doubles after every failed attempt.
    """
    attempts = max(1, int(attempts))
    delay = max(0.0, float(backoff_s))
    for attempt in range(1, attempts + 1):
        try:
            return call()
        except retry_on as exc:
            if attempt == attempts:
                raise
            logger.debug("attempt %d/%d failed (%s), retrying in %.2fs", attempt, attempts, exc, delay)
            sleep(delay)
            delay *= 2
