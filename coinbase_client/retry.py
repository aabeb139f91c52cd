from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional, TypeVar

from .errors import ApiError, CoinbaseError, TransportError


log = logging.getLogger(__name__)

T = TypeVar("T")


class TokenBucket:
    """Client-side request throttle shared by concurrent calls."""

    def __init__(self, rate_per_sec: int, capacity: Optional[int] = None) -> None:
        self.rate_per_sec = max(1, rate_per_sec)
        self.capacity = capacity if capacity is not None else self.rate_per_sec
        self.tokens = float(self.capacity)
        self.last = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self, tokens: int = 1) -> None:
        async with self._lock:
            while True:
                now = time.monotonic()
                elapsed = now - self.last
                self.last = now
                self.tokens = min(self.capacity, self.tokens + elapsed * self.rate_per_sec)
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                await asyncio.sleep(max(0.0, (tokens - self.tokens) / self.rate_per_sec))


def backoff_gen(
    base: float = 0.5, factor: float = 2.0, jitter: float = 0.1, maximum: float = 30.0
) -> Iterator[float]:
    """Exponential delays; jitter only ever lengthens a delay."""
    delay = base
    while True:
        yield min(delay + random.uniform(0.0, jitter) * delay, maximum)
        delay = min(delay * factor, maximum)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, TransportError):
        return True
    if isinstance(exc, ApiError):
        return exc.retryable
    return False


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 0.5
    factor: float = 2.0
    jitter: float = 0.1
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ValueError("delays and jitter must be non-negative")
        if self.factor < 1.0:
            raise ValueError("factor must be >= 1.0")

    def delays(self) -> Iterator[float]:
        return backoff_gen(self.base_delay, self.factor, self.jitter, self.max_delay)

    def nominal_delays(self) -> list:
        """Delays without jitter between each of the max_attempts attempts."""
        out, delay = [], self.base_delay
        for _ in range(self.max_attempts - 1):
            out.append(min(delay, self.max_delay))
            delay = min(delay * self.factor, self.max_delay)
        return out

    async def run(
        self,
        attempt_fn: Callable[[int], Awaitable[T]],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        limiter: Optional[TokenBucket] = None,
    ) -> T:
        """Call ``attempt_fn(n)`` for n = 1.. until it succeeds or fails terminally.

        ``attempt_fn`` must rebuild and re-sign its request on every call.
        The error of the last attempt is raised with ``attempts`` set.
        """
        delays = self.delays()
        attempt = 1
        while True:
            if limiter is not None:
                await limiter.acquire()
            try:
                return await attempt_fn(attempt)
            except CoinbaseError as exc:
                exc.attempts = attempt
                if not is_retryable(exc) or attempt >= self.max_attempts:
                    if attempt > 1:
                        log.warning("giving up after %d attempt(s): %s", attempt, exc)
                    raise
                delay = next(delays)
                if isinstance(exc, ApiError) and exc.retry_after is not None:
                    # never wait longer than max_delay, whatever the server asks for
                    delay = max(delay, min(exc.retry_after, self.max_delay))
                log.info(
                    "attempt %d/%d failed (%s), retrying in %.2fs",
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
            await sleep(delay)
            attempt += 1
