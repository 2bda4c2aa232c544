"""Bounded exponential-backoff retries for flaky network operations.

Callers own idempotency: only wrap operations that are safe to repeat with the
same input (transcription and analysis requests are).
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from callscribe.telemetry import observe_retry

logger = logging.getLogger("callscribe.pipeline")

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    *,
    factor: float = 2.0,
    label: str = "operation",
) -> T:
    """Await ``operation`` up to ``max_attempts`` times and return its result.

    The delay before attempt ``n + 1`` is ``initial_delay * factor ** (n - 1)``.
    When every attempt fails the last exception is re-raised as-is.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            observe_retry(label, final=attempt == max_attempts)
            if attempt == max_attempts:
                logger.error(
                    "%s failed after %s attempts: %s", label, max_attempts, exc
                )
                raise
            logger.warning(
                "%s attempt %s/%s failed, retrying in %.2fs: %s",
                label,
                attempt,
                max_attempts,
                delay,
                exc,
            )
            await asyncio.sleep(delay)
            delay *= factor

    raise AssertionError("unreachable")  # pragma: no cover


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings carried by the pipeline and applied per operation."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    factor: float = 2.0

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str) -> T:
        return await with_retry(
            operation,
            self.max_attempts,
            self.initial_delay,
            factor=self.factor,
            label=label,
        )


def retryable(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    *,
    factor: float = 2.0,
    label: str | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator form of :func:`with_retry` for coroutine functions."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await with_retry(
                lambda: func(*args, **kwargs),
                max_attempts,
                initial_delay,
                factor=factor,
                label=label or func.__qualname__,
            )

        return wrapper

    return decorator


__all__ = ["RetryPolicy", "retryable", "with_retry"]
