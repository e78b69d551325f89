"""Bounded async retry with exponential backoff.

Design goals:
- One entry point, explicit attempt budget
- Deterministic delays: 1s, 2s, 4s, ... (no jitter, no cap)
- Credential and request errors fail fast
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

log = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
BASE_DELAY_S = 1.0

NON_RETRYABLE_MARKERS: tuple[str, ...] = (
    "invalid_api_key",
    "authentication",
    "unauthorized",
    "forbidden",
    "not_found",
    "invalid_request",
)


def is_non_retryable(exc: BaseException) -> bool:
    """Return True when the error message names a failure retrying cannot fix."""
    message = str(exc).lower()
    return any(marker in message for marker in NON_RETRYABLE_MARKERS)


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after the zero-based *attempt* fails."""
    return (2**attempt) * BASE_DELAY_S


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    logger: logging.Logger | None = None,
) -> T:
    """Await ``operation()`` up to *max_attempts* times.

    Non-retryable errors and cancellation propagate on the spot. When the
    budget runs out the last error is re-raised unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    active = logger if logger is not None else log

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as exc:
            if is_non_retryable(exc):
                raise
            remaining = max_attempts - attempt - 1
            if remaining == 0:
                raise

            delay = backoff_delay(attempt)
            active.warning(
                "Retrying operation (attempt=%d, remaining=%d, delay=%.1fs): %s",
                attempt + 1,
                remaining,
                delay,
                exc,
                extra={
                    "retry": {
                        "attempt": attempt + 1,
                        "max_attempts": max_attempts,
                        "remaining": remaining,
                        "error": str(exc),
                    }
                },
            )
            await sleep(delay)

    # Unreachable: every attempt returns or raises.
    raise RuntimeError("with_retry exhausted without an exception")  # pragma: no cover
