"""
Bounded retry for store reads.

Only reads go through here. Writes in the sale commit sequence are never
retried blindly, because a lost response does not tell us whether the row
landed.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import get_settings
from domain.errors import TransientIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying store read after transient failure",
        extra={"attempt": retry_state.attempt_number, "error": str(exc) if exc else None},
    )


def _retrying() -> Retrying:
    settings = get_settings()
    wait = settings.io_retry_wait_seconds
    return Retrying(
        stop=stop_after_attempt(settings.io_retry_attempts),
        wait=wait_exponential(multiplier=wait, min=wait, max=wait * 8),
        retry=retry_if_exception_type(TransientIOError),
        before_sleep=_log_retry,
        reraise=True,
    )


def with_io_retry(operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Call `operation`, retrying TransientIOError with exponential backoff."""

    return _retrying()(operation, *args, **kwargs)


__all__ = ["with_io_retry"]
