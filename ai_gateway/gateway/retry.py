"""Retry/Backoff Executor with exponential backoff and optional jitter.

Wraps one adapter call in a bounded retry loop:
  delay = min(base * 2^(attempt-1) + jitter, max_delay)
  jitter = random(0, base * 0.5), only when enabled

Non-retryable errors (validation, auth, permission, 4xx other than 429,
format errors) are re-raised on the first failure. When every attempt
fails, MaxRetriesExceededError wraps the last error.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from ai_gateway.core.exceptions import MaxRetriesExceededError, RateLimitError, is_non_retryable
from ai_gateway.gateway.normalizer import normalize_result
from ai_gateway.gateway.types import GenerationOptions, Message, NormalizedResult

if TYPE_CHECKING:
    from ai_gateway.gateway.vendor_adapters import BaseProviderAdapter

logger = logging.getLogger(__name__)

# Called after every attempt with (attempt, error or None, latency_ms)
AttemptHook = Callable[[int, BaseException | None, int], Awaitable[None]]


class RetryExecutor:
    """Runs adapter calls with bounded retries. Holds no per-call state."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 60_000,
        jitter: bool = False,
        honor_retry_after: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.jitter = jitter
        self.honor_retry_after = honor_retry_after
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return max(1, self.max_retries)

    def calculate_backoff(self, attempt: int) -> float:
        """Delay in milliseconds before the attempt following ``attempt``."""
        delay = self.base_delay_ms * (2 ** (attempt - 1))
        if self.jitter:
            delay += random.uniform(0, self.base_delay_ms * 0.5)
        return min(delay, self.max_delay_ms)

    def _delay_for(self, attempt: int, error: BaseException) -> float:
        delay = self.calculate_backoff(attempt)
        if self.honor_retry_after and isinstance(error, RateLimitError) and error.retry_after:
            delay = min(max(delay, error.retry_after * 1000), self.max_delay_ms)
        return delay

    async def execute(
        self,
        adapter: BaseProviderAdapter,
        messages: list[Message],
        options: GenerationOptions | None = None,
        on_attempt: AttemptHook | None = None,
    ) -> NormalizedResult:
        options = options or GenerationOptions()
        attempts = self.max_attempts

        for attempt in range(1, attempts + 1):
            start = time.monotonic()
            try:
                result = normalize_result(await adapter.completion(messages, options))
            except Exception as exc:
                latency_ms = int((time.monotonic() - start) * 1000)
                if on_attempt is not None:
                    await on_attempt(attempt, exc, latency_ms)

                if is_non_retryable(exc):
                    logger.info(
                        "%s: non-retryable error, giving up: %s", adapter.name, exc, extra={"provider": adapter.name}
                    )
                    raise
                if attempt >= attempts:
                    logger.warning(
                        "%s: max retries (%d) exceeded: %s", adapter.name, attempts, exc, extra={"provider": adapter.name}
                    )
                    raise MaxRetriesExceededError(exc, attempts, provider=adapter.name) from exc

                delay_ms = self._delay_for(attempt, exc)
                logger.info(
                    "%s: attempt %d/%d failed (%s), retrying in %.0fms",
                    adapter.name,
                    attempt,
                    attempts,
                    exc,
                    delay_ms,
                    extra={"provider": adapter.name},
                )
                await self._sleep(delay_ms / 1000)
                continue

            if on_attempt is not None:
                await on_attempt(attempt, None, result.latency_ms or int((time.monotonic() - start) * 1000))
            return result

        raise AssertionError("unreachable")  # pragma: no cover
