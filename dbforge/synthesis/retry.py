# dbforge/synthesis/retry.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from dbforge.logging import safe_extra

log = logging.getLogger(__name__)

T = TypeVar("T")


def exponential_backoff(attempt: int) -> float:
    """Seconds to wait after failed attempt number *attempt* (1-based): 2, 4, 8, ..."""
    return float(2 ** attempt)


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = exponential_backoff
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)

    async def run(self, fn: Callable[[], Awaitable[T]], *, label: str = "call") -> T:
        """Await fn() until it succeeds or max_attempts is reached; the last error propagates."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await fn()
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    log.warning(
                        "retry.exhausted",
                        extra=safe_extra({"label": label, "attempts": attempt, "error": str(e)}),
                    )
                    raise
                delay = self.backoff(attempt)
                log.info(
                    "retry.scheduled",
                    extra=safe_extra({"label": label, "attempt": attempt, "delay_s": delay, "error": str(e)}),
                )
                await self.sleep(delay)
