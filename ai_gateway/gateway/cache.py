"""Response Cache: in-process TTL store of normalized results.

Keys are content fingerprints of the request (messages + provider, model,
temperature, max_tokens) or an explicit ``cache_key``. Expired entries are
dropped lazily on read or by purge_expired(); the oldest entry is evicted
once ``max_entries`` is exceeded.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence
from typing import Any

from ai_gateway.core.metrics import CACHE_EVENTS
from ai_gateway.gateway.types import CacheEntry, GenerationOptions, Message, NormalizedResult

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "ai_cache_"


def make_fingerprint(messages: Sequence[Message], options: GenerationOptions, provider: str | None = None) -> str:
    """Deterministic cache key. Never includes caller identity.

    ``provider`` is the resolved target; it defaults to the pinned one.
    """
    if options.cache_key:
        return options.cache_key
    material: dict[str, Any] = {
        "messages": [m.to_dict() for m in messages],
        "provider": provider or options.provider,
        "model": options.model,
        "temperature": options.temperature,
        "max_tokens": options.max_tokens,
    }
    digest = hashlib.sha256(json.dumps(material, sort_keys=True, ensure_ascii=False).encode()).hexdigest()
    return f"{CACHE_KEY_PREFIX}{digest}"


class ResponseCache:
    def __init__(
        self,
        ttl_ms: int,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_ms = ttl_ms
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return (now - entry.stored_at) * 1000 > self.ttl_ms

    async def get(self, key: str) -> NormalizedResult | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._expired(entry, self._clock()):
                del self._entries[key]
                entry = None
            if entry is None:
                self.misses += 1
                CACHE_EVENTS.labels(event="miss").inc()
                return None
            self.hits += 1
        CACHE_EVENTS.labels(event="hit").inc()
        return entry.result

    async def put(self, key: str, result: NormalizedResult) -> None:
        async with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(key=key, result=result, stored_at=self._clock())
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache full, evicted %s", evicted)
        CACHE_EVENTS.labels(event="write").inc()

    async def purge_expired(self) -> int:
        async with self._lock:
            now = self._clock()
            stale = [k for k, e in self._entries.items() if self._expired(e, now)]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("Purged %d expired cache entries", len(stale))
        return len(stale)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "size": len(self._entries)}
