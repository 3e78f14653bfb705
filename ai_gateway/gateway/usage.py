"""Usage tracker: per-provider and global token/cost counters.

Each provider bucket has its own asyncio.Lock and the global bucket has
another; no lock spans all providers. Counters only grow until reset().
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from ai_gateway.core.metrics import COST_TOTAL, TOKENS_TOTAL
from ai_gateway.gateway.types import TokenUsage, UsageCounters, UsageStats

logger = logging.getLogger(__name__)


@dataclass
class _UsageBucket:
    counters: UsageCounters = field(default_factory=UsageCounters)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class UsageTracker:
    def __init__(self) -> None:
        self._global = _UsageBucket()
        self._buckets: dict[str, _UsageBucket] = {}

    def register(self, name: str) -> None:
        self._buckets.setdefault(name, _UsageBucket())

    def unregister(self, name: str) -> None:
        self._buckets.pop(name, None)

    async def record(self, provider: str, tokens: TokenUsage, cost: float) -> None:
        bucket = self._buckets.setdefault(provider, _UsageBucket())
        async with bucket.lock:
            bucket.counters.add(tokens, cost)
        async with self._global.lock:
            self._global.counters.add(tokens, cost)

        TOKENS_TOTAL.labels(provider=provider, kind="prompt").inc(tokens.prompt)
        TOKENS_TOTAL.labels(provider=provider, kind="completion").inc(tokens.completion)
        COST_TOTAL.labels(provider=provider).inc(cost)

    def snapshot(self) -> UsageStats:
        g = self._global.counters
        return UsageStats(
            total_requests=g.total_requests,
            total_tokens=g.total_tokens,
            total_prompt_tokens=g.total_prompt_tokens,
            total_completion_tokens=g.total_completion_tokens,
            total_cost=g.total_cost,
            provider_stats={name: b.counters.copy() for name, b in self._buckets.items()},
        )

    def provider_snapshot(self, name: str) -> UsageCounters | None:
        bucket = self._buckets.get(name)
        return bucket.counters.copy() if bucket else None

    async def reset(self) -> None:
        """Zero every counter. Operator action only."""
        async with self._global.lock:
            self._global.counters = UsageCounters()
        for bucket in list(self._buckets.values()):
            async with bucket.lock:
                bucket.counters = UsageCounters()
        logger.info("Usage statistics reset")
