from __future__ import annotations

import logging

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from authsync.core.logging import get_logger

logger = get_logger(__name__)


def with_retry(max_retries: int = 3, backoff_factor: float = 0.5):
    """Exponential backoff retry decorator for auth API calls.

    Only transport-level failures are retried; an HTTP error status is an answer.
    """
    return retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        stop=stop_after_attempt(max(1, max_retries)),
        wait=wait_exponential(multiplier=backoff_factor, min=0, max=30),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
