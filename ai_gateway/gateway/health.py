"""Health Monitor: latest health record per provider plus active checks.

One asyncio.Lock per provider guards its record. Passive updates come from
the orchestrator after every call attempt; active checks send a tiny
request straight to the adapter, bypassing retries and usage accounting.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from ai_gateway.gateway.types import GenerationOptions, HealthRecord, HealthStatus, Message, Role

if TYPE_CHECKING:
    from ai_gateway.gateway.vendor_adapters import BaseProviderAdapter

logger = logging.getLogger(__name__)

HEALTH_CHECK_MESSAGES = (Message(role=Role.USER, content="Health check"),)
HEALTH_CHECK_MAX_TOKENS = 10


class HealthMonitor:
    def __init__(
        self,
        registry: Callable[[], Mapping[str, BaseProviderAdapter]],
        check_timeout_ms: int = 10_000,
    ):
        self._registry = registry
        self.check_timeout_ms = check_timeout_ms
        self._records: dict[str, HealthRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._task: asyncio.Task | None = None

    def _lock(self, name: str) -> asyncio.Lock:
        return self._locks.setdefault(name, asyncio.Lock())

    async def record(
        self,
        name: str,
        status: HealthStatus,
        response_time_ms: int = 0,
        error: str | None = None,
    ) -> HealthRecord:
        entry = HealthRecord(provider=name, status=status, response_time_ms=response_time_ms, error=error)
        async with self._lock(name):
            previous = self._records.get(name)
            self._records[name] = entry
        if previous is not None and previous.status != status:
            logger.info("Provider %s is now %s", name, status.value)
        return entry

    def forget(self, name: str) -> None:
        self._records.pop(name, None)
        self._locks.pop(name, None)

    def get(self, name: str) -> HealthRecord | None:
        return self._records.get(name)

    def snapshot(self) -> dict[str, HealthRecord]:
        return dict(self._records)

    def healthy_providers(self) -> list[str]:
        return [name for name, rec in self._records.items() if rec.is_healthy]

    async def check_health(self, name: str) -> HealthRecord:
        adapter = self._registry().get(name)
        if adapter is None:
            return HealthRecord(provider=name, status=HealthStatus.NOT_FOUND, error="Provider not registered")

        options = GenerationOptions(
            max_tokens=HEALTH_CHECK_MAX_TOKENS, use_cache=False, timeout_ms=self.check_timeout_ms
        )
        start = time.monotonic()
        try:
            await adapter.completion(list(HEALTH_CHECK_MESSAGES), options)
        except Exception as exc:
            latency_ms = int((time.monotonic() - start) * 1000)
            logger.warning("Health check failed for %s: %s", name, exc, extra={"provider": name})
            return await self.record(name, HealthStatus.UNHEALTHY, latency_ms, str(exc))

        latency_ms = int((time.monotonic() - start) * 1000)
        return await self.record(name, HealthStatus.HEALTHY, latency_ms)

    async def check_all_health(self) -> dict[str, HealthRecord]:
        names = list(self._registry())
        records = await asyncio.gather(*(self.check_health(n) for n in names))
        return dict(zip(names, records))

    # -- background loop ---------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_ms: int) -> None:
        """Run check_all_health every ``interval_ms``. 0 disables the loop."""
        if interval_ms <= 0 or self.running:
            return
        self._task = asyncio.create_task(self._loop(interval_ms / 1000), name="ai-gateway-health")
        logger.info("Health monitor started (interval=%dms)", interval_ms)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Health monitor stopped")

    async def _loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                records = await self.check_all_health()
            except Exception:
                logger.exception("Periodic health check failed")
                continue
            unhealthy = [n for n, r in records.items() if not r.is_healthy]
            if unhealthy:
                logger.warning("Unhealthy providers: %s", ", ".join(unhealthy))
