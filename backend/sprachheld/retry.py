from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from .settings import settings


logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({500, 502, 503, 504})
TRANSIENT_MARKERS = (
    "503",
    "service unavailable",
    "model is overloaded",
    "server error",
    "internal error",
)


def is_transient(error: BaseException, extra_markers: Iterable[str] = ()) -> bool:
    status = getattr(error, "status_code", None)
    if status in TRANSIENT_STATUS_CODES:
        return True
    message = str(error).lower()
    return any(marker in message for marker in (*TRANSIENT_MARKERS, *extra_markers))


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    *,
    label: str,
    max_retries: Optional[int] = None,
    initial_delay_ms: Optional[int] = None,
    extra_markers: Iterable[str] = (),
) -> T:
    """Run ``operation``, retrying transient failures with exponential backoff.

    The wait before attempt ``n + 1`` is ``initial_delay_ms * 2 ** (n - 1)``.
    Non-transient errors propagate immediately; once ``max_retries`` attempts
    have failed the last error propagates.
    """
    max_retries = max_retries if max_retries is not None else settings.ai_max_retries
    initial_delay_ms = initial_delay_ms if initial_delay_ms is not None else settings.ai_initial_retry_delay_ms
    extra_markers = tuple(extra_markers)
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            attempt += 1
            if attempt >= max_retries:
                logger.error("[%s] failed after %d attempts: %s", label, attempt, exc)
                raise
            if not is_transient(exc, extra_markers):
                logger.error("[%s] failed with non-retryable error: %s", label, exc)
                raise
            delay_ms = initial_delay_ms * (2 ** (attempt - 1))
            logger.warning(
                "[%s] attempt %d failed with transient error, retrying in %.1fs: %s",
                label,
                attempt,
                delay_ms / 1000,
                str(exc).split("\n")[0],
            )
            await asyncio.sleep(delay_ms / 1000)
