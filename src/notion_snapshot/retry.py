from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_MS = 250
DEFAULT_CAP_MS = 2000


class RetryError(Exception):
    """Raised once every attempt of a labelled operation has failed."""

    def __init__(self, label: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


def backoff_delay(attempt: int, *, base_ms: int = DEFAULT_BASE_MS, cap_ms: int = DEFAULT_CAP_MS) -> float:
    """Delay in seconds to wait after failed attempt number ``attempt`` (1-based)."""
    if attempt < 1:
        raise ValueError("attempt is 1-based")
    return min(cap_ms, base_ms * 2 ** (attempt - 1)) / 1000.0


class RetryExecutor:
    """Runs an async operation with bounded exponential backoff.

    The executor knows nothing about the operation; every exception counts as a
    failed attempt. After ``max_attempts`` failures a :class:`RetryError` chained
    to the last failure is raised.
    """

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_ms: int = DEFAULT_BASE_MS,
        cap_ms: int = DEFAULT_CAP_MS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_ms = base_ms
        self.cap_ms = cap_ms
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        label: str = "request",
        max_attempts: int | None = None,
    ) -> T:
        tries = max_attempts or self.max_attempts
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as exc:  # noqa: BLE001
                attempt += 1
                if attempt >= tries:
                    logger.error("%s failed after %d tries: %s", label, tries, exc)
                    raise RetryError(label, attempt, exc) from exc
                delay = backoff_delay(attempt, base_ms=self.base_ms, cap_ms=self.cap_ms)
                logger.warning("Retry %d/%d for %s in %.0fms (%s)", attempt, tries, label, delay * 1000, exc)
                await self._sleep(delay)


__all__ = ["RetryError", "RetryExecutor", "backoff_delay"]
