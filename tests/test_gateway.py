"""Tests for the AI Gateway orchestrator.

Covers:
  - Gateway types and config validation
  - Message / options validation
  - Retry accounting through the orchestrator
  - Response cache round-trip
  - Provider fallback
  - Usage, health and conversation bookkeeping
  - API key redaction end-to-end
"""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from conftest import TEST_API_KEY, ScriptedAdapter, make_httpx_response, make_result
from ai_gateway.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidMessageError,
    InvalidRequestError,
    MaxRetriesExceededError,
    NoProvidersAvailableError,
    ProviderNotFoundError,
    ServerError,
)
from ai_gateway.core.logging import JSONFormatter
from ai_gateway.gateway.conversations import InMemoryConversationStore
from ai_gateway.gateway.gateway import AIGateway, normalize_options
from ai_gateway.gateway.types import (
    CompletionResult,
    GatewayConfig,
    GenerationOptions,
    HealthStatus,
    Message,
    Role,
)
from ai_gateway.gateway.vendor_adapters import OpenAIAdapter

HELLO = [{"role": "user", "content": "Hello"}]


def _gateway(fast_executor, adapters, max_retries=3, store=None, **config) -> AIGateway:
    config.setdefault("default_provider", next(iter(adapters), "mockA"))
    return AIGateway(
        GatewayConfig(max_retries=max_retries, **config),
        adapters=adapters,
        conversation_store=store,
        executor=fast_executor(max_retries=max_retries),
    )


# ==========================================================================
# Test: Gateway Types
# ==========================================================================


class TestGatewayTypes:
    def test_message_from_mapping(self):
        msg = Message.from_any({"role": "assistant", "content": "ok"})
        assert msg.role == Role.ASSISTANT
        assert msg.to_dict() == {"role": "assistant", "content": "ok"}

    @pytest.mark.parametrize(
        "raw",
        [
            {"content": "no role"},
            {"role": "wizard", "content": "x"},
            {"role": "user", "content": ""},
            {"role": "user", "content": 42},
            "not a mapping",
        ],
    )
    def test_message_rejected(self, raw):
        with pytest.raises(InvalidMessageError):
            Message.from_any(raw)

    def test_options_accept_camel_case(self):
        opts = GenerationOptions.model_validate({"maxTokens": 50, "useCache": True, "topP": 0.5, "unknown": 1})
        assert opts.max_tokens == 50
        assert opts.use_cache is True
        assert opts.top_p == 0.5

    def test_options_accept_snake_case(self):
        opts = GenerationOptions(max_tokens=50, profile_id="p1")
        assert opts.max_tokens == 50
        assert opts.profile_id == "p1"

    def test_completion_result_from_result(self):
        result = CompletionResult.from_result(make_result(), conversation_id="c1", cost_usd=0.1)
        assert result.content == "Hi"
        assert result.conversation_id == "c1"
        assert result.from_cache is False
        assert result.to_dict()["tokens"]["total"] == 7


class TestGatewayConfig:
    def test_defaults(self):
        config = GatewayConfig()
        assert config.default_provider == "openai"
        assert config.fallback_enabled is True
        assert config.max_retries == 3
        assert config.cache_ttl_ms == 3_600_000
        assert config.health_check_interval_ms == 300_000

    @pytest.mark.parametrize(
        "changes",
        [
            {"max_retries": -1},
            {"max_retries": "3"},
            {"cache_ttl_ms": -5},
            {"default_provider": 5},
            {"fallback_enabled": "yes"},
            {"no_such_field": 1},
        ],
    )
    def test_invalid_values_rejected(self, changes):
        with pytest.raises(ConfigurationError):
            GatewayConfig(**changes)

    def test_immutable(self):
        config = GatewayConfig()
        with pytest.raises(ValidationError):
            config.max_retries = 10

    def test_updated_returns_new_config(self):
        config = GatewayConfig()
        new = config.updated(max_retries=5)
        assert new.max_retries == 5
        assert config.max_retries == 3


# ==========================================================================
# Test: Validation
# ==========================================================================


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "messages",
        [[], [{"role": "user"}], [{"role": "robot", "content": "x"}], "Hello"],
    )
    async def test_invalid_messages_never_reach_adapter(self, fast_executor, messages):
        adapter = ScriptedAdapter("mockA", [make_result()])
        gateway = _gateway(fast_executor, {"mockA": adapter})
        with pytest.raises(InvalidMessageError):
            await gateway.generate_completion(messages)
        assert adapter.calls == 0

    @pytest.mark.asyncio
    async def test_invalid_options_rejected(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result()])
        gateway = _gateway(fast_executor, {"mockA": adapter})
        with pytest.raises(InvalidRequestError):
            await gateway.generate_completion(HELLO, {"temperature": 5})
        assert adapter.calls == 0

    @pytest.mark.asyncio
    async def test_caller_options_not_mutated(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result()])
        gateway = _gateway(fast_executor, {"mockA": adapter})
        options = {"maxTokens": 50, "profileId": "p1"}
        await gateway.generate_completion(HELLO, options)

        assert options == {"maxTokens": 50, "profileId": "p1"}
        assert adapter.seen_options[0].max_tokens == 50
        assert adapter.seen_options[0].profile_id == "p1"

    def test_normalize_options_passthrough(self):
        opts = GenerationOptions(seed=1)
        assert normalize_options(opts) is opts
        assert normalize_options(None) == GenerationOptions()
        with pytest.raises(InvalidRequestError):
            normalize_options(["not", "a", "mapping"])


# ==========================================================================
# Test: Completion flow
# ==========================================================================


class TestGenerateCompletion:
    @pytest.mark.asyncio
    async def test_end_to_end_with_stub_adapter(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result()])
        gateway = _gateway(fast_executor, {"mockA": adapter})

        result = await gateway.generate_completion(HELLO, {"provider": "mockA"})

        assert result.content == "Hi"
        assert result.provider == "mockA"
        assert result.model == "mock-1"
        assert result.tokens.total == 7
        assert result.used_fallback is False
        assert result.from_cache is False
        assert result.conversation_id.startswith("conv_")

    @pytest.mark.asyncio
    async def test_given_conversation_id_is_kept(self, fast_executor):
        gateway = _gateway(fast_executor, {"mockA": ScriptedAdapter("mockA", [make_result()])})
        result = await gateway.generate_completion(HELLO, {"conversationId": "conv_given"})
        assert result.conversation_id == "conv_given"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("n", [1, 2, 4])
    async def test_permanent_failure_exactly_n_invocations(self, fast_executor, n):
        adapter = ScriptedAdapter("mockA", [ServerError("down")])
        gateway = _gateway(fast_executor, {"mockA": adapter}, max_retries=n)
        with pytest.raises(MaxRetriesExceededError):
            await gateway.generate_completion(HELLO)
        assert adapter.calls == n

    @pytest.mark.asyncio
    async def test_non_retryable_single_invocation(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [AuthenticationError("bad key", status_code=401)])
        gateway = _gateway(fast_executor, {"mockA": adapter}, max_retries=5)
        with pytest.raises(AuthenticationError):
            await gateway.generate_completion(HELLO)
        assert adapter.calls == 1

    @pytest.mark.asyncio
    async def test_no_providers(self, fast_executor):
        gateway = AIGateway(GatewayConfig(), executor=fast_executor())
        with pytest.raises(NoProvidersAvailableError):
            await gateway.generate_completion(HELLO)

    @pytest.mark.asyncio
    async def test_unknown_pinned_provider(self, fast_executor):
        gateway = _gateway(fast_executor, {"mockA": ScriptedAdapter("mockA", [make_result()])})
        with pytest.raises(ProviderNotFoundError):
            await gateway.generate_completion(HELLO, {"provider": "ghost"})

    @pytest.mark.asyncio
    async def test_options_reach_adapter(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result()])
        gateway = _gateway(fast_executor, {"mockA": adapter})
        await gateway.generate_completion(HELLO, GenerationOptions(temperature=0.1, stop="END"))
        assert adapter.seen_options[0].temperature == 0.1
        assert adapter.seen_options[0].stop_sequences == ["END"]


# ==========================================================================
# Test: Cache
# ==========================================================================


class TestGatewayCache:
    @pytest.mark.asyncio
    async def test_round_trip_invokes_adapter_once(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result(content="cached answer")])
        gateway = _gateway(fast_executor, {"mockA": adapter})
        options = {"provider": "mockA", "temperature": 0.3, "maxTokens": 20, "useCache": True}

        first = await gateway.generate_completion(HELLO, options)
        second = await gateway.generate_completion(HELLO, options)

        assert adapter.calls == 1
        assert first.from_cache is False
        assert second.from_cache is True
        assert second.content == first.content == "cached answer"

    @pytest.mark.asyncio
    async def test_cache_hit_skips_usage(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result()])
        gateway = _gateway(fast_executor, {"mockA": adapter})
        await gateway.generate_completion(HELLO, {"useCache": True})
        await gateway.generate_completion(HELLO, {"useCache": True})
        assert gateway.get_usage_stats().total_requests == 1

    @pytest.mark.asyncio
    async def test_cache_disabled_in_config(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result()])
        gateway = _gateway(fast_executor, {"mockA": adapter}, cache_enabled=False)
        await gateway.generate_completion(HELLO, {"useCache": True})
        await gateway.generate_completion(HELLO, {"useCache": True})
        assert adapter.calls == 2

    @pytest.mark.asyncio
    async def test_cache_not_used_unless_requested(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result()])
        gateway = _gateway(fast_executor, {"mockA": adapter})
        await gateway.generate_completion(HELLO)
        await gateway.generate_completion(HELLO)
        assert adapter.calls == 2
        assert len(gateway.cache) == 0

    @pytest.mark.asyncio
    async def test_default_provider_change_misses_cache(self, fast_executor):
        a = ScriptedAdapter("mockA", [make_result(content="from A")])
        b = ScriptedAdapter("mockB", [make_result(provider="mockB", content="from B")])
        gateway = _gateway(fast_executor, {"mockA": a, "mockB": b})
        await gateway.generate_completion(HELLO, {"useCache": True})

        gateway.update_config(default_provider="mockB")
        result = await gateway.generate_completion(HELLO, {"useCache": True})

        assert result.from_cache is False
        assert result.content == "from B"
        assert a.calls == 1
        assert b.calls == 1


# ==========================================================================
# Test: Fallback
# ==========================================================================


class TestFallback:
    @pytest.mark.asyncio
    async def test_falls_back_when_default_fails(self, fast_executor):
        a = ScriptedAdapter("mockA", [ServerError("A is down")])
        b = ScriptedAdapter("mockB", [make_result(provider="mockB", content="from B")])
        gateway = _gateway(fast_executor, {"mockA": a, "mockB": b})

        result = await gateway.generate_completion(HELLO)

        assert result.used_fallback is True
        assert result.provider == "mockB"
        assert result.content == "from B"
        assert gateway.get_provider_usage("mockB").total_requests == 1
        assert gateway.get_provider_usage("mockA").total_requests == 0

    @pytest.mark.asyncio
    async def test_pinned_provider_never_falls_back(self, fast_executor):
        a = ScriptedAdapter("mockA", [ServerError("A is down")])
        b = ScriptedAdapter("mockB", [make_result(provider="mockB")])
        gateway = _gateway(fast_executor, {"mockA": a, "mockB": b})

        with pytest.raises(MaxRetriesExceededError):
            await gateway.generate_completion(HELLO, {"provider": "mockA"})
        assert b.calls == 0

    @pytest.mark.asyncio
    async def test_fallback_disabled(self, fast_executor):
        a = ScriptedAdapter("mockA", [ServerError("A is down")])
        b = ScriptedAdapter("mockB", [make_result(provider="mockB")])
        gateway = _gateway(fast_executor, {"mockA": a, "mockB": b}, fallback_enabled=False)

        with pytest.raises(MaxRetriesExceededError):
            await gateway.generate_completion(HELLO)
        assert b.calls == 0

    @pytest.mark.asyncio
    async def test_prefers_healthy_provider(self, fast_executor):
        a = ScriptedAdapter("mockA", [ServerError("A is down")])
        b = ScriptedAdapter("mockB", [make_result(provider="mockB")])
        c = ScriptedAdapter("mockC", [make_result(provider="mockC")])
        gateway = _gateway(fast_executor, {"mockA": a, "mockB": b, "mockC": c})
        await gateway.health.record("mockB", HealthStatus.UNHEALTHY, 10, "flaky")
        await gateway.health.record("mockC", HealthStatus.HEALTHY, 10)

        result = await gateway.generate_completion(HELLO)

        assert result.provider == "mockC"
        assert b.calls == 0

    @pytest.mark.asyncio
    async def test_unregistered_default_falls_back(self, fast_executor):
        a = ScriptedAdapter("mockA", [make_result()])
        gateway = _gateway(fast_executor, {"mockA": a}, default_provider="openai")
        result = await gateway.generate_completion(HELLO)
        assert result.used_fallback is True
        assert result.provider == "mockA"

    @pytest.mark.asyncio
    async def test_fallback_failure_propagates(self, fast_executor):
        a = ScriptedAdapter("mockA", [ServerError("A is down")])
        b = ScriptedAdapter("mockB", [AuthenticationError("B key revoked", status_code=401)])
        gateway = _gateway(fast_executor, {"mockA": a, "mockB": b})

        with pytest.raises(AuthenticationError) as exc_info:
            await gateway.generate_completion(HELLO)
        assert isinstance(exc_info.value.__cause__, MaxRetriesExceededError)

    @pytest.mark.asyncio
    async def test_fallback_log_carries_provider(self, fast_executor, caplog):
        a = ScriptedAdapter("mockA", [ServerError("A is down")])
        b = ScriptedAdapter("mockB", [make_result(provider="mockB")])
        gateway = _gateway(fast_executor, {"mockA": a, "mockB": b})

        with caplog.at_level(logging.WARNING, logger="ai_gateway.gateway.gateway"):
            result = await gateway.generate_completion(HELLO)

        record = next(r for r in caplog.records if "falling back" in r.getMessage())
        assert record.provider == "mockA"
        assert record.conversation_id == result.conversation_id
        formatted = json.loads(JSONFormatter().format(record))
        assert formatted["provider"] == "mockA"
        assert formatted["conversation_id"] == result.conversation_id


# ==========================================================================
# Test: Bookkeeping
# ==========================================================================


class TestBookkeeping:
    @pytest.mark.asyncio
    async def test_usage_is_k_times_t(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result(prompt=10, completion=5, total=15)])
        gateway = _gateway(fast_executor, {"mockA": adapter})
        for _ in range(3):
            await gateway.generate_completion(HELLO)

        stats = gateway.get_usage_stats()
        assert stats.provider_stats["mockA"].total_tokens == 45
        assert stats.provider_stats["mockA"].total_requests == 3
        assert stats.total_tokens == 45

    @pytest.mark.asyncio
    async def test_cost_from_adapter_pricing(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [make_result(prompt=1_000_000, completion=1_000_000, total=2_000_000)])
        gateway = _gateway(fast_executor, {"mockA": adapter})
        result = await gateway.generate_completion(HELLO)
        assert result.cost_usd == 3.0
        assert gateway.get_usage_stats().total_cost == 3.0

    @pytest.mark.asyncio
    async def test_reset_usage(self, fast_executor):
        gateway = _gateway(fast_executor, {"mockA": ScriptedAdapter("mockA", [make_result()])})
        await gateway.generate_completion(HELLO)
        await gateway.reset_usage_stats()
        assert gateway.get_usage_stats().total_requests == 0

    @pytest.mark.asyncio
    async def test_health_recorded_after_attempts(self, fast_executor):
        adapter = ScriptedAdapter("mockA", [ServerError("down"), make_result()])
        gateway = _gateway(fast_executor, {"mockA": adapter}, max_retries=1)

        with pytest.raises(MaxRetriesExceededError):
            await gateway.generate_completion(HELLO)
        assert gateway.health.get("mockA").status == HealthStatus.UNHEALTHY
        assert gateway.health.get("mockA").error == "down"

        await gateway.generate_completion(HELLO)
        assert gateway.health.get("mockA").is_healthy

    @pytest.mark.asyncio
    async def test_conversation_written_in_background(self, fast_executor):
        store = InMemoryConversationStore()
        gateway = _gateway(fast_executor, {"mockA": ScriptedAdapter("mockA", [make_result()])}, store=store)

        result = await gateway.generate_completion(HELLO, {"profileId": "p1", "conversationType": "chat"})
        await gateway.aclose()

        rows = await store.list_by_profile("p1")
        assert len(rows) == 1
        assert rows[0]["conversation_id"] == result.conversation_id
        assert rows[0]["user_id"] == "anonymous"
        assert rows[0]["conversation_type"] == "chat"

    @pytest.mark.asyncio
    async def test_conversation_history_through_gateway(self, fast_executor):
        results = [make_result(), make_result(), make_result()]
        gateway = _gateway(fast_executor, {"mockA": ScriptedAdapter("mockA", results)})

        first = await gateway.generate_completion(HELLO, {"profileId": "p1"})
        second = await gateway.generate_completion(HELLO, {"profileId": "p1"})
        await gateway.generate_completion(HELLO)
        await gateway.conversations.drain()

        history = await gateway.get_conversation_history("p1")
        assert [r["conversation_id"] for r in history] == [first.conversation_id, second.conversation_id]
        assert len(await gateway.get_conversation_history(None)) == 1
        assert [r["conversation_id"] for r in await gateway.get_conversation_history("p1", limit=1)] == [
            second.conversation_id
        ]
        assert (await gateway.get_conversation(first.conversation_id))["profile_id"] == "p1"
        assert await gateway.get_conversation("conv_missing") is None

    @pytest.mark.asyncio
    async def test_failed_conversation_write_does_not_fail_call(self, fast_executor):
        class BrokenStore(InMemoryConversationStore):
            async def create(self, record):
                raise RuntimeError("disk full")

        gateway = _gateway(fast_executor, {"mockA": ScriptedAdapter("mockA", [make_result()])}, store=BrokenStore())
        result = await gateway.generate_completion(HELLO)
        await gateway.aclose()
        assert result.content == "Hi"

    @pytest.mark.asyncio
    async def test_check_provider_health(self, fast_executor):
        gateway = _gateway(fast_executor, {"mockA": ScriptedAdapter("mockA", [make_result()])})
        assert (await gateway.check_provider_health("mockA")).is_healthy
        assert (await gateway.check_provider_health("ghost")).status == HealthStatus.NOT_FOUND
        assert set(await gateway.get_providers_health()) == {"mockA"}
        # Health checks bypass usage accounting
        assert gateway.get_usage_stats().total_requests == 0


# ==========================================================================
# Test: Registry and config
# ==========================================================================


class TestRegistryAndConfig:
    def test_register_and_unregister(self, fast_executor):
        gateway = _gateway(fast_executor, {"mockA": ScriptedAdapter("mockA", [make_result()])})
        gateway.register_provider("mockB", ScriptedAdapter("mockB", [make_result()]))
        assert gateway.get_available_providers() == ["mockA", "mockB"]
        assert gateway.is_provider_available("mockB")
        assert gateway.unregister_provider("mockB") is True
        assert gateway.unregister_provider("mockB") is False
        assert gateway.get_provider("mockB") is None
        assert gateway.get_provider_usage("mockB") is None
        assert "mockB" not in gateway.get_usage_stats().provider_stats

    @pytest.mark.asyncio
    async def test_unregister_drops_provider_usage_only(self, fast_executor):
        adapters = {
            "mockA": ScriptedAdapter("mockA", [make_result()]),
            "mockB": ScriptedAdapter("mockB", [make_result(provider="mockB")]),
        }
        gateway = _gateway(fast_executor, adapters)
        await gateway.generate_completion(HELLO, {"provider": "mockB"})
        assert gateway.get_provider_usage("mockB").total_requests == 1

        gateway.unregister_provider("mockB")
        assert gateway.get_provider_usage("mockB") is None
        assert gateway.get_usage_stats().total_requests == 1

    def test_register_rejects_non_adapter(self, fast_executor):
        gateway = _gateway(fast_executor, {})
        with pytest.raises(ConfigurationError):
            gateway.register_provider("bogus", object())

    def test_update_config_validates(self):
        gateway = AIGateway(GatewayConfig())
        with pytest.raises(ConfigurationError):
            gateway.update_config(max_retries=-1)
        assert gateway.config.max_retries == 3

        gateway.update_config(max_retries=5, cache_ttl_ms=1000)
        assert gateway.config.max_retries == 5
        assert gateway.executor.max_retries == 5
        assert gateway.cache.ttl_ms == 1000

    def test_status_snapshot(self, fast_executor):
        gateway = _gateway(fast_executor, {"mockA": ScriptedAdapter("mockA", [make_result()])})
        status = gateway.get_status()
        assert set(status) >= {"providers", "config", "health", "usage", "cache"}
        assert TEST_API_KEY not in str(status)


# ==========================================================================
# Test: Redaction end-to-end
# ==========================================================================


class TestRedactionThroughGateway:
    @pytest.mark.asyncio
    async def test_key_never_leaves_the_gateway(self, fast_executor):
        adapter = OpenAIAdapter(TEST_API_KEY)
        gateway = _gateway(fast_executor, {"openai": adapter})
        body = {"error": {"message": f"Incorrect API key provided: {TEST_API_KEY}"}}

        with patch("ai_gateway.gateway.vendor_adapters.httpx.AsyncClient") as mock_client_cls:
            mock_client = AsyncMock()
            mock_client.post.return_value = make_httpx_response(401, body)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_cls.return_value = mock_client

            with pytest.raises(AuthenticationError) as exc_info:
                await gateway.generate_completion(HELLO)

        assert TEST_API_KEY not in str(exc_info.value)
        assert TEST_API_KEY not in gateway.health.get("openai").error
