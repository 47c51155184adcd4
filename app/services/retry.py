"""Retry policy shared by every upstream catalog call."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from ..errors import ProviderTransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Only connection-level failures and upstream 5xx are worth retrying."""

    return isinstance(exc, ProviderTransientError)


@dataclass(slots=True)
class RetryPolicy:
    """Exponential backoff: the delay before retry ``n`` is ``base_delay * 2 ** (n - 1)``."""

    max_attempts: int = 3
    base_delay: float = 1.0
    is_retryable: Callable[[BaseException], bool] = is_transient
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Return the wait after the failed ``attempt`` (1-based)."""

        return self.base_delay * (2 ** (attempt - 1))

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        description: str = "upstream request",
    ) -> T:
        """Await ``operation`` until it succeeds, fails permanently or runs out of attempts."""

        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.is_retryable(exc):
                    raise
                delay = self.delay_for(attempt)
                logger.info(
                    "%s failed (attempt %s/%s): %s. Retrying in %.1fs",
                    description,
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await self.sleep(delay)
                attempt += 1
