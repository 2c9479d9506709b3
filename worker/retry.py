"""
Exponential backoff for flaky browser steps.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from worker.errors import is_retryable

T = TypeVar("T")
log = logging.getLogger("worker.retry")


def backoff_delay(attempt: int, base_delay: float = 1.0, max_delay: float = 10.0) -> float:
    """Delay before the attempt after `attempt` (1-based): base * 2^(attempt-1), capped."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    label: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Run `operation` up to `attempts` times.

    Errors flagged non-retryable are re-raised at once; the last error is
    re-raised when every attempt fails.
    """
    sleep = sleep or asyncio.sleep
    attempts = max(1, attempts)
    for attempt in range(1, attempts):
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            log.warning(
                "%s failed (attempt %s/%s): %s; retrying in %.1fs",
                label,
                attempt,
                attempts,
                exc,
                delay,
                extra={"step": label, "attempt": attempt},
            )
            await sleep(delay)

    # Final attempt
    return await operation()


__all__ = ["backoff_delay", "with_retry"]
