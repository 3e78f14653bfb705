"""AI Gateway: orchestrator integrating all gateway components.

Main entry point for chat completions against any registered provider:
  1. Validates messages and normalizes options
  2. Serves repeated requests from the Response Cache (opt-in)
  3. Dispatches to the selected provider through the Retry/Backoff Executor
  4. Falls back to another provider when the default one fails
  5. Records health, usage and cost for every call
  6. Persists the conversation in the background

Usage:
    gateway = AIGateway(adapters={"openai": OpenAIAdapter("sk-...")})
    result = await gateway.generate_completion(
        [{"role": "user", "content": "Hello"}], {"temperature": 0.2}
    )
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from ai_gateway.core.exceptions import (
    ConfigurationError,
    InvalidRequestError,
    NoProvidersAvailableError,
    ProviderNotFoundError,
)
from ai_gateway.core.metrics import FALLBACKS, PROVIDER_DURATION, PROVIDER_REQUESTS
from ai_gateway.gateway.cache import ResponseCache, make_fingerprint
from ai_gateway.gateway.conversations import (
    MAX_LOCAL_CONVERSATIONS,
    ConversationLogger,
    ConversationStore,
    IdentityProvider,
    InMemoryConversationStore,
    generate_conversation_id,
)
from ai_gateway.gateway.health import HealthMonitor
from ai_gateway.gateway.retry import RetryExecutor
from ai_gateway.gateway.types import (
    CompletionResult,
    ConversationRecord,
    GatewayConfig,
    GenerationOptions,
    HealthRecord,
    HealthStatus,
    Message,
    NormalizedResult,
    UsageCounters,
    UsageStats,
    validate_messages,
)
from ai_gateway.gateway.usage import UsageTracker
from ai_gateway.gateway.vendor_adapters import BaseProviderAdapter, create_adapters

logger = logging.getLogger(__name__)


def normalize_options(options: GenerationOptions | Mapping[str, Any] | None) -> GenerationOptions:
    """Accept options as a model, a snake_case or camelCase mapping, or None.

    The caller's object is never mutated.
    """
    if options is None:
        return GenerationOptions()
    if isinstance(options, GenerationOptions):
        return options
    if not isinstance(options, Mapping):
        raise InvalidRequestError(f"Options must be a mapping, got {type(options).__name__}")
    try:
        return GenerationOptions.model_validate(dict(options))
    except ValidationError as exc:
        problems = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())
        raise InvalidRequestError(f"Invalid options: {problems}") from None


class AIGateway:
    """Main gateway orchestrator.

    Integrates:
      - Provider registry: name -> BaseProviderAdapter
      - RetryExecutor: bounded retries with exponential backoff
      - HealthMonitor: latest per-provider health, active checks
      - UsageTracker: global and per-provider tokens and cost
      - ResponseCache: opt-in TTL cache keyed by request fingerprint
      - ConversationLogger: background persistence of completed calls
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        adapters: Mapping[str, BaseProviderAdapter] | None = None,
        conversation_store: ConversationStore | None = None,
        identity: IdentityProvider | None = None,
        executor: RetryExecutor | None = None,
        cache: ResponseCache | None = None,
    ):
        self._config = config or GatewayConfig()
        self._adapters: dict[str, BaseProviderAdapter] = {}
        self._custom_executor = executor is not None

        self.executor = executor or self._build_executor(self._config)
        self.cache = cache or ResponseCache(self._config.cache_ttl_ms, self._config.cache_max_entries)
        self.usage = UsageTracker()
        self.health = HealthMonitor(lambda: self._adapters)
        self.conversations = ConversationLogger(conversation_store or InMemoryConversationStore(), identity)

        for name, adapter in (adapters or {}).items():
            self.register_provider(name, adapter)

    @staticmethod
    def _build_executor(config: GatewayConfig) -> RetryExecutor:
        return RetryExecutor(
            max_retries=config.max_retries,
            base_delay_ms=config.base_delay_ms,
            max_delay_ms=config.max_delay_ms,
            jitter=config.retry_jitter,
            honor_retry_after=config.honor_retry_after,
        )

    # -- registry ----------------------------------------------------------

    def register_provider(self, name: str, adapter: BaseProviderAdapter) -> None:
        if not isinstance(adapter, BaseProviderAdapter):
            raise ConfigurationError(f"Provider '{name}' must be a BaseProviderAdapter")
        self._adapters[name] = adapter
        self.usage.register(name)
        logger.info("Registered provider %s (%s)", name, adapter.kind)

    def unregister_provider(self, name: str) -> bool:
        adapter = self._adapters.pop(name, None)
        if adapter is None:
            return False
        self.health.forget(name)
        self.usage.unregister(name)
        logger.info("Unregistered provider %s", name)
        return True

    def get_available_providers(self) -> list[str]:
        return list(self._adapters)

    def is_provider_available(self, name: str) -> bool:
        return name in self._adapters

    def get_provider(self, name: str) -> BaseProviderAdapter | None:
        return self._adapters.get(name)

    # -- config ------------------------------------------------------------

    @property
    def config(self) -> GatewayConfig:
        return self._config

    def update_config(self, **changes: Any) -> GatewayConfig:
        """Apply ``changes`` to a new validated config. Raises ConfigurationError."""
        new_config = self._config.updated(**changes)
        self._config = new_config
        if not self._custom_executor:
            self.executor = self._build_executor(new_config)
        self.cache.ttl_ms = new_config.cache_ttl_ms
        self.cache.max_entries = new_config.cache_max_entries
        logger.info("Gateway config updated: %s", ", ".join(sorted(changes)))
        return new_config

    # -- completions -------------------------------------------------------

    async def generate_completion(
        self,
        messages: Sequence[Message | Mapping[str, Any]],
        options: GenerationOptions | Mapping[str, Any] | None = None,
    ) -> CompletionResult:
        started = time.monotonic()
        validated = validate_messages(messages)
        opts = normalize_options(options)
        conversation_id = opts.conversation_id or generate_conversation_id()

        target = opts.provider or self._config.default_provider
        use_cache = opts.use_cache and self._config.cache_enabled
        cache_key = make_fingerprint(validated, opts, target) if use_cache else None
        if cache_key is not None:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Cache hit for %s", cache_key)
                return CompletionResult.from_result(
                    cached,
                    conversation_id=conversation_id,
                    profile_id=opts.profile_id,
                    from_cache=True,
                )

        served_by = target
        used_fallback = False
        try:
            adapter, result = await self._call_provider(target, validated, opts)
        except Exception as primary_error:
            fallback = None
            if self._config.fallback_enabled and not opts.provider:
                fallback = self._find_fallback_provider(exclude=target)
            if fallback is None:
                raise

            logger.warning(
                "Provider %s failed (%s), falling back to %s",
                target,
                primary_error,
                fallback,
                extra={"provider": target, "conversation_id": conversation_id},
            )
            FALLBACKS.labels(from_provider=target, to_provider=fallback).inc()
            try:
                adapter, result = await self._call_provider(fallback, validated, opts)
            except Exception as fallback_error:
                raise fallback_error from primary_error
            served_by = fallback
            used_fallback = True

        cost = self._cost_for(adapter, result, opts)
        await self.usage.record(served_by, result.tokens, cost)

        user_id = await self.conversations.resolve_user_id()
        self.conversations.submit(
            ConversationRecord(
                conversation_id=conversation_id,
                profile_id=opts.profile_id,
                user_id=user_id,
                messages=tuple(validated),
                result=result,
                provider=result.provider,
                tokens=result.tokens,
                cost_usd=cost,
                conversation_type=opts.conversation_type,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        )

        if cache_key is not None:
            await self.cache.put(cache_key, result)

        return CompletionResult.from_result(
            result,
            conversation_id=conversation_id,
            profile_id=opts.profile_id,
            used_fallback=used_fallback,
            from_cache=False,
            cost_usd=cost,
        )

    async def _call_provider(
        self, name: str, messages: list[Message], options: GenerationOptions
    ) -> tuple[BaseProviderAdapter, NormalizedResult]:
        if not self._adapters:
            raise NoProvidersAvailableError("No AI providers available")
        adapter = self._adapters.get(name)
        if adapter is None:
            raise ProviderNotFoundError(f"Provider '{name}' not found", provider=name)

        async def on_attempt(attempt: int, error: BaseException | None, latency_ms: int) -> None:
            PROVIDER_DURATION.labels(provider=name).observe(latency_ms / 1000)
            if error is None:
                PROVIDER_REQUESTS.labels(provider=name, status="success").inc()
                await self.health.record(name, HealthStatus.HEALTHY, latency_ms)
            else:
                PROVIDER_REQUESTS.labels(provider=name, status="error").inc()
                await self.health.record(name, HealthStatus.UNHEALTHY, latency_ms, str(error))

        result = await self.executor.execute(adapter, messages, options, on_attempt=on_attempt)
        return adapter, result

    def _find_fallback_provider(self, exclude: str) -> str | None:
        """First other provider whose latest health is healthy, else the first other one."""
        others = [name for name in self._adapters if name != exclude]
        if not others:
            return None
        for name in others:
            record = self.health.get(name)
            if record is not None and record.is_healthy:
                return name
        return others[0]

    @staticmethod
    def _cost_for(adapter: BaseProviderAdapter, result: NormalizedResult, options: GenerationOptions) -> float:
        model = result.model if adapter.is_model_available(result.model) else (options.model or adapter.model)
        return adapter.calculate_cost(result.tokens, model, options)

    # -- health & usage ----------------------------------------------------

    async def check_provider_health(self, name: str) -> HealthRecord:
        return await self.health.check_health(name)

    async def get_providers_health(self) -> dict[str, HealthRecord]:
        return await self.health.check_all_health()

    def get_usage_stats(self) -> UsageStats:
        return self.usage.snapshot()

    def get_provider_usage(self, name: str) -> UsageCounters | None:
        return self.usage.provider_snapshot(name)

    async def reset_usage_stats(self) -> None:
        await self.usage.reset()

    # -- conversations -----------------------------------------------------

    async def get_conversation_history(
        self, profile_id: str | None, limit: int = MAX_LOCAL_CONVERSATIONS
    ) -> list[dict[str, Any]]:
        """Stored conversations for ``profile_id``, oldest first."""
        return await self.conversations.store.list_by_profile(profile_id, limit)

    async def get_conversation(self, conversation_id: str) -> dict[str, Any] | None:
        return await self.conversations.store.get_by_id(conversation_id)

    def get_status(self) -> dict[str, Any]:
        return {
            "providers": {name: a.get_provider_info() for name, a in self._adapters.items()},
            "config": self._config.model_dump(),
            "health": {name: rec.to_dict() for name, rec in self.health.snapshot().items()},
            "usage": self.usage.snapshot().to_dict(),
            "cache": self.cache.stats(),
            "pending_conversation_writes": self.conversations.pending,
        }

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        self.health.start(self._config.health_check_interval_ms)

    async def aclose(self) -> None:
        await self.health.stop()
        await self.conversations.drain()


def build_gateway(settings) -> AIGateway:
    """Wire a gateway from application settings."""
    store: ConversationStore
    if settings.persist_conversations:
        from ai_gateway.db.postgres import async_session_factory
        from ai_gateway.gateway.conversations import SqlConversationStore

        store = SqlConversationStore(async_session_factory)
    else:
        store = InMemoryConversationStore()

    gateway = AIGateway(
        settings.gateway_config(),
        adapters=create_adapters(settings),
        conversation_store=store,
    )
    if not gateway.get_available_providers():
        logger.warning("No AI providers configured; completions will fail until one is registered")
    return gateway
