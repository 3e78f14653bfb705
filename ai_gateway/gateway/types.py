"""Core types and DTOs for the AI Provider Gateway."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError
from pydantic.alias_generators import to_camel

from ai_gateway.core.exceptions import ConfigurationError, InvalidMessageError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Role(str, Enum):
    """Message roles accepted at the gateway surface."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    NOT_FOUND = "not_found"


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Message:
    """A single chat message."""

    role: Role
    content: str

    @classmethod
    def from_any(cls, obj: Any) -> Message:
        """Build a Message from a Message or a ``{"role", "content"}`` mapping.

        Raises InvalidMessageError on a missing/unknown role or empty content.
        """
        if isinstance(obj, Message):
            return obj
        if not isinstance(obj, Mapping):
            raise InvalidMessageError(f"Invalid message format: expected a mapping, got {type(obj).__name__}")

        role = obj.get("role")
        content = obj.get("content")
        if not role:
            raise InvalidMessageError("Invalid message format: missing role")
        try:
            role = Role(role)
        except ValueError:
            raise InvalidMessageError(f"Invalid message role: {role}") from None
        if not isinstance(content, str):
            raise InvalidMessageError("Message content must be a string")
        if not content:
            raise InvalidMessageError("Message content is required")
        return cls(role=role, content=content)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


def validate_messages(messages: Any) -> list[Message]:
    """Validate a message sequence and return it as Message objects."""
    if isinstance(messages, (str, bytes)) or not isinstance(messages, (list, tuple)):
        raise InvalidMessageError("Messages must be a list")
    if not messages:
        raise InvalidMessageError("Messages array cannot be empty")
    return [Message.from_any(m) for m in messages]


# ---------------------------------------------------------------------------
# Generation options
# ---------------------------------------------------------------------------


class GenerationOptions(BaseModel):
    """Per-call generation options.

    Fields are populated by their snake_case name or by the camelCase
    spelling older callers send (``maxTokens``, ``useCache`` ...).
    Unrecognized keys are ignored; ``None`` means "use the adapter default".
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    provider: str | None = None
    model: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    top_k: int | None = Field(default=None, gt=0)
    stop: str | list[str] | None = None
    tools: list[dict[str, Any]] | None = None
    tool_choice: Any = None
    functions: list[dict[str, Any]] | None = None
    function_call: Any = None
    response_format: dict[str, Any] | None = None
    seed: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    safety_settings: list[dict[str, Any]] | None = None
    stream: bool = False
    use_cache: bool = False
    cache_key: str | None = None
    profile_id: str | None = None
    conversation_id: str | None = None
    conversation_type: str = "completion"
    batch_mode: bool = False
    prompt_caching: bool = False
    timeout_ms: int | None = Field(default=None, gt=0)

    @property
    def stop_sequences(self) -> list[str] | None:
        if self.stop is None:
            return None
        return [self.stop] if isinstance(self.stop, str) else list(self.stop)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0
    cached_prompt: int = 0

    def __post_init__(self) -> None:
        if self.total == 0 and (self.prompt or self.completion):
            object.__setattr__(self, "total", self.prompt + self.completion)


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: Any = None
    type: str = "function"


@dataclass(frozen=True)
class NormalizedResult:
    """Backend-agnostic result of one successful adapter call."""

    content: str
    model: str
    provider: str
    tokens: TokenUsage
    finish_reason: str = ""
    id: str = ""
    tool_calls: tuple[ToolCall, ...] | None = None
    function_call: dict[str, Any] | None = None
    streamed: bool = False
    latency_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.tool_calls is not None:
            data["tool_calls"] = [asdict(tc) for tc in self.tool_calls]
        return data


@dataclass(frozen=True)
class CompletionResult(NormalizedResult):
    """NormalizedResult enriched with gateway context for the caller."""

    conversation_id: str = ""
    profile_id: str | None = None
    used_fallback: bool = False
    from_cache: bool = False
    cost_usd: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_result(cls, result: NormalizedResult, **extra: Any) -> CompletionResult:
        base = {f.name: getattr(result, f.name) for f in fields(NormalizedResult)}
        return cls(**base, **extra)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["timestamp"] = self.timestamp.isoformat()
        return data


# ---------------------------------------------------------------------------
# Usage, health, cache, conversation records
# ---------------------------------------------------------------------------


@dataclass
class UsageCounters:
    total_requests: int = 0
    total_tokens: int = 0
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_cost: float = 0.0

    def add(self, tokens: TokenUsage, cost: float) -> None:
        self.total_requests += 1
        self.total_tokens += tokens.total
        self.total_prompt_tokens += tokens.prompt
        self.total_completion_tokens += tokens.completion
        self.total_cost = round(self.total_cost + cost, 6)

    def copy(self) -> UsageCounters:
        return UsageCounters(**asdict(self))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UsageStats:
    """Point-in-time snapshot of global and per-provider usage."""

    total_requests: int = 0
    total_tokens: int = 0
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_cost: float = 0.0
    provider_stats: dict[str, UsageCounters] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_tokens": self.total_tokens,
            "total_prompt_tokens": self.total_prompt_tokens,
            "total_completion_tokens": self.total_completion_tokens,
            "total_cost": self.total_cost,
            "provider_stats": {name: c.to_dict() for name, c in self.provider_stats.items()},
        }


@dataclass(frozen=True)
class HealthRecord:
    provider: str
    status: HealthStatus
    last_check: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    response_time_ms: int = 0
    error: str | None = None

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "response_time_ms": self.response_time_ms,
            "error": self.error,
        }


@dataclass(frozen=True)
class CacheEntry:
    key: str
    result: NormalizedResult
    stored_at: float  # time.monotonic()


@dataclass(frozen=True)
class ConversationRecord:
    """Write-only record forwarded to the persistence collaborator."""

    conversation_id: str
    profile_id: str | None
    user_id: str
    messages: tuple[Message, ...]
    result: NormalizedResult
    provider: str
    tokens: TokenUsage
    cost_usd: float = 0.0
    conversation_type: str = "completion"
    duration_ms: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "profile_id": self.profile_id,
            "user_id": self.user_id,
            "messages": [m.to_dict() for m in self.messages],
            "result": self.result.to_dict(),
            "provider": self.provider,
            "tokens": asdict(self.tokens),
            "cost_usd": self.cost_usd,
            "conversation_type": self.conversation_type,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
        }


# ---------------------------------------------------------------------------
# Gateway config
# ---------------------------------------------------------------------------


class GatewayConfig(BaseModel):
    """Validated, immutable orchestrator configuration.

    Invalid values are rejected here, at construction, never at call time.
    Use ``updated()`` to derive a new config.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_provider: StrictStr = "openai"
    fallback_enabled: StrictBool = True
    max_retries: StrictInt = Field(default=3, ge=0)
    base_delay_ms: StrictInt = Field(default=1000, ge=0)
    max_delay_ms: StrictInt = Field(default=60_000, ge=0)
    retry_jitter: StrictBool = False
    honor_retry_after: StrictBool = True
    cache_enabled: StrictBool = True
    cache_ttl_ms: StrictInt = Field(default=3_600_000, ge=0)
    cache_max_entries: StrictInt = Field(default=1000, gt=0)
    health_check_interval_ms: StrictInt = Field(default=300_000, ge=0)
    request_timeout_ms: StrictInt = Field(default=30_000, gt=0)

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ConfigurationError(f"Invalid gateway configuration: {problems}") from None

    def updated(self, **changes: Any) -> GatewayConfig:
        """Return a new validated config with ``changes`` applied."""
        return GatewayConfig(**{**self.model_dump(), **changes})
