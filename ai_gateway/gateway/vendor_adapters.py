"""Provider Adapters: protocol-level handling for each AI backend.

Each adapter translates a validated message list plus GenerationOptions
into the backend's HTTP protocol, sends it, and returns a NormalizedResult.
Failures are raised as GatewayError subclasses with the API key redacted.

Backend-specific behaviors:
  - OpenAI: chat completions, Bearer auth, tool_calls + legacy function_call,
    cached prompt tokens billed at the cached rate
  - Anthropic: messages API, system content hoisted to ``system``,
    strict user/assistant alternation, ``tool_use`` content blocks
  - Google: generateContent, ``assistant`` mapped to ``model``, system
    content hoisted to ``systemInstruction``, long-context price tiers
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from ai_gateway.core.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    GatewayError,
    InvalidMessageError,
    InvalidRequestError,
    InvalidResponseFormatError,
    NetworkError,
    ProviderPermissionError,
    RateLimitError,
    ServerError,
    sanitize_error,
)
from ai_gateway.gateway.pricing import (
    ANTHROPIC_PRICING,
    GOOGLE_PRICING,
    OPENAI_PRICING,
    ModelPrice,
    calculate_cost,
)
from ai_gateway.gateway.types import (
    GenerationOptions,
    Message,
    NormalizedResult,
    Role,
    TokenUsage,
    ToolCall,
    validate_messages,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000
DEFAULT_TIMEOUT_MS = 30_000

# Raised by parse_response when a 200 body has the right keys but the wrong shape
_SHAPE_ERRORS = (AttributeError, KeyError, TypeError, IndexError)


@dataclass
class _StreamState:
    """Accumulates decoded server-sent events into one result."""

    parts: list[str] = field(default_factory=list)
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    finish_reason: str = ""
    id: str = ""
    model: str = ""


class BaseProviderAdapter(ABC):
    """Base class for all provider adapters."""

    kind: str
    default_model: str
    default_base_url: str
    pricing: dict[str, ModelPrice]
    accepted_roles: frozenset[Role] = frozenset(Role)

    def __init__(
        self,
        api_key: str,
        *,
        name: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name or self.kind
        if not isinstance(api_key, str) or not api_key:
            raise ConfigurationError(f"API key is required for provider '{self.name}'", provider=self.name)
        if not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise ConfigurationError("timeout_ms must be a positive integer", provider=self.name)
        if not isinstance(max_tokens, int) or max_tokens <= 0:
            raise ConfigurationError("max_tokens must be a positive integer", provider=self.name)
        if not 0 <= temperature <= 2:
            raise ConfigurationError("temperature must be between 0 and 2", provider=self.name)

        base_url = (base_url or self.default_base_url).rstrip("/")
        try:
            url = httpx.URL(base_url)
        except httpx.InvalidURL:
            url = None
        if url is None or url.scheme not in ("http", "https") or not url.host:
            raise ConfigurationError(f"Invalid base URL: {base_url}", provider=self.name)

        self.api_key = api_key
        self.model = model or self.default_model
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_ms = timeout_ms
        self._transport = transport

    # -- public contract --------------------------------------------------

    async def completion(
        self, messages: list[Message] | list[dict], options: GenerationOptions | None = None
    ) -> NormalizedResult:
        """Send one request to the backend. Raises a GatewayError on failure."""
        options = options or GenerationOptions()
        start = time.monotonic()
        try:
            validated = self.validate_messages(messages)
            payload = self.build_payload(validated, options)
            model = options.model or self.model
            if options.stream:
                result = await self._stream(payload, model, options)
            else:
                data = await self._post(self._endpoint(model, stream=False), payload, options)
                result = self._parse(data, model)
        except Exception as exc:
            sanitized = sanitize_error(exc, self.api_key)
            if isinstance(sanitized, GatewayError) and sanitized.provider is None:
                sanitized.provider = self.name
            if sanitized is exc:
                raise
            raise sanitized from None

        latency_ms = int((time.monotonic() - start) * 1000)
        return _with_latency(result, latency_ms)

    def validate_messages(self, messages: Any) -> list[Message]:
        validated = validate_messages(messages)
        for message in validated:
            if message.role not in self.accepted_roles:
                raise InvalidMessageError(
                    f"Invalid message role for {self.name}: {message.role.value}", provider=self.name
                )
        return validated

    @abstractmethod
    def build_payload(self, messages: list[Message], options: GenerationOptions) -> dict[str, Any]:
        """Translate messages and options into the backend's request body."""
        ...

    @abstractmethod
    def parse_response(self, data: dict[str, Any], model: str) -> NormalizedResult:
        ...

    def _parse(self, data: dict[str, Any], model: str) -> NormalizedResult:
        try:
            return self.parse_response(data, model)
        except _SHAPE_ERRORS as exc:
            raise InvalidResponseFormatError(
                f"Invalid response format from {self.name}: {type(exc).__name__}: {exc}", provider=self.name
            ) from exc

    def calculate_cost(self, tokens: TokenUsage, model: str, options: GenerationOptions | None = None) -> float:
        options = options or GenerationOptions()
        return calculate_cost(
            self.pricing,
            tokens,
            model,
            batch_mode=options.batch_mode,
            prompt_caching=options.prompt_caching,
            context_length=tokens.prompt,
        )

    def get_available_models(self) -> list[str]:
        return list(self.pricing)

    def is_model_available(self, model: str) -> bool:
        return model in self.pricing

    def get_model_pricing(self, model: str) -> ModelPrice | None:
        return self.pricing.get(model)

    def get_provider_info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "model": self.model,
            "base_url": self.base_url,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout_ms": self.timeout_ms,
            "available_models": self.get_available_models(),
        }

    # -- transport ---------------------------------------------------------

    @abstractmethod
    def _endpoint(self, model: str, *, stream: bool) -> str:
        ...

    @abstractmethod
    def _headers(self) -> dict[str, str]:
        ...

    def _timeout(self, options: GenerationOptions) -> float:
        return (options.timeout_ms or self.timeout_ms) / 1000

    def _client(self, timeout: float) -> httpx.AsyncClient:
        if self._transport is not None:
            return httpx.AsyncClient(timeout=timeout, transport=self._transport)
        return httpx.AsyncClient(timeout=timeout)

    async def _post(self, url: str, payload: dict[str, Any], options: GenerationOptions) -> dict[str, Any]:
        timeout = self._timeout(options)
        try:
            async with self._client(timeout) as client:
                resp = await client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{self.name} request timed out after {timeout}s", provider=self.name) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"{self.name} network error: {exc}", provider=self.name) from exc

        if resp.status_code >= 400:
            raise self._error_from_response(resp)
        try:
            data = resp.json()
        except ValueError:
            raise InvalidResponseFormatError(
                f"Invalid response format from {self.name}: body is not JSON", provider=self.name
            ) from None
        if not isinstance(data, dict):
            raise InvalidResponseFormatError(f"Invalid response format from {self.name}", provider=self.name)
        return data

    async def _stream(self, payload: dict[str, Any], model: str, options: GenerationOptions) -> NormalizedResult:
        timeout = self._timeout(options)
        state = _StreamState(model=model)
        try:
            async with self._client(timeout) as client:
                async with client.stream(
                    "POST", self._endpoint(model, stream=True), json=payload, headers=self._headers()
                ) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                        raise self._error_from_response(resp)
                    async for line in resp.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        chunk = line[len("data:") :].strip()
                        if not chunk:
                            continue
                        if chunk == "[DONE]":
                            break
                        try:
                            event = json.loads(chunk)
                        except ValueError:
                            logger.debug("Skipping undecodable %s stream chunk", self.name)
                            continue
                        self._consume(event, state)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{self.name} stream timed out after {timeout}s", provider=self.name) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"{self.name} network error: {exc}", provider=self.name) from exc

        return NormalizedResult(
            content="".join(state.parts),
            model=state.model,
            provider=self.name,
            tokens=TokenUsage(
                prompt=state.prompt_tokens,
                completion=state.completion_tokens,
                total=state.total_tokens,
            ),
            finish_reason=state.finish_reason,
            id=state.id or _generated_id(self.kind),
            streamed=True,
        )

    @abstractmethod
    def _consume_stream_event(self, event: dict[str, Any], state: _StreamState) -> None:
        ...

    def _consume(self, event: dict[str, Any], state: _StreamState) -> None:
        try:
            self._consume_stream_event(event, state)
        except _SHAPE_ERRORS as exc:
            raise InvalidResponseFormatError(
                f"Invalid response format in {self.name} stream: {type(exc).__name__}: {exc}", provider=self.name
            ) from exc

    def _error_from_response(self, resp: httpx.Response) -> GatewayError:
        """Map a non-2xx response onto the error taxonomy."""
        status = resp.status_code
        message = _extract_error_message(resp) or f"HTTP {status}"
        kwargs = {"provider": self.name, "status_code": status}

        if status in (400, 404, 422):
            return InvalidRequestError(message, **kwargs)
        if status == 401:
            return AuthenticationError(message, **kwargs)
        if status == 403:
            return ProviderPermissionError(message, **kwargs)
        if status == 429:
            retry_after = _parse_retry_after(resp.headers.get("retry-after"))
            logger.warning("%s rate limited (retry_after=%s)", self.name, retry_after)
            return RateLimitError(message, retry_after=retry_after, **kwargs)
        if 500 <= status < 600:
            return ServerError(message, **kwargs)
        return APIError(message, **kwargs)


def _with_latency(result: NormalizedResult, latency_ms: int) -> NormalizedResult:
    return replace(result, latency_ms=latency_ms)


def _generated_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:24]}"


def _extract_error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip()[:500]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    return resp.text.strip()[:500]


def _parse_retry_after(value: str | None) -> float | None:
    """Retry-After as seconds; accepts delta-seconds or an HTTP date."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _parse_arguments(raw: Any) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return raw


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


# ---------------------------------------------------------------------------
# OpenAI Adapter
# ---------------------------------------------------------------------------


class OpenAIAdapter(BaseProviderAdapter):
    """OpenAI Chat Completions adapter."""

    kind = "openai"
    default_model = "gpt-4o"
    default_base_url = "https://api.openai.com/v1"
    pricing = OPENAI_PRICING

    def _endpoint(self, model: str, *, stream: bool) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(self, messages: list[Message], options: GenerationOptions) -> dict[str, Any]:
        payload = {
            "model": options.model or self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": options.temperature if options.temperature is not None else self.temperature,
            "max_tokens": options.max_tokens or self.max_tokens,
        }
        payload.update(
            _drop_none(
                {
                    "top_p": options.top_p,
                    "frequency_penalty": options.frequency_penalty,
                    "presence_penalty": options.presence_penalty,
                    "stop": options.stop,
                    "seed": options.seed,
                    "response_format": options.response_format,
                    "tools": options.tools,
                    "tool_choice": options.tool_choice,
                    "functions": options.functions,
                    "function_call": options.function_call,
                }
            )
        )
        if options.stream:
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}
        return payload

    def parse_response(self, data: dict[str, Any], model: str) -> NormalizedResult:
        choices = data.get("choices")
        if not choices or not isinstance(choices[0].get("message"), dict):
            raise InvalidResponseFormatError("Invalid response format: missing choices", provider=self.name)
        choice = choices[0]
        message = choice["message"]

        tool_calls = None
        if message.get("tool_calls"):
            tool_calls = tuple(
                ToolCall(
                    id=tc.get("id", ""),
                    name=tc.get("function", {}).get("name", ""),
                    arguments=_parse_arguments(tc.get("function", {}).get("arguments")),
                    type=tc.get("type", "function"),
                )
                for tc in message["tool_calls"]
            )
        function_call = None
        if message.get("function_call"):
            function_call = {
                "name": message["function_call"].get("name", ""),
                "arguments": _parse_arguments(message["function_call"].get("arguments")),
            }

        usage = data.get("usage") or {}
        cached = (usage.get("prompt_tokens_details") or {}).get("cached_tokens", 0)
        return NormalizedResult(
            content=message.get("content") or "",
            model=data.get("model", model),
            provider=self.name,
            tokens=TokenUsage(
                prompt=usage.get("prompt_tokens", 0),
                completion=usage.get("completion_tokens", 0),
                total=usage.get("total_tokens", 0),
                cached_prompt=cached or 0,
            ),
            finish_reason=choice.get("finish_reason") or "",
            id=data.get("id") or _generated_id(self.kind),
            tool_calls=tool_calls,
            function_call=function_call,
        )

    def _consume_stream_event(self, event: dict[str, Any], state: _StreamState) -> None:
        state.id = event.get("id") or state.id
        state.model = event.get("model") or state.model
        for choice in event.get("choices") or []:
            delta = choice.get("delta") or {}
            if delta.get("content"):
                state.parts.append(delta["content"])
            if choice.get("finish_reason"):
                state.finish_reason = choice["finish_reason"]
        usage = event.get("usage")
        if usage:
            state.prompt_tokens = usage.get("prompt_tokens", state.prompt_tokens)
            state.completion_tokens = usage.get("completion_tokens", state.completion_tokens)
            state.total_tokens = usage.get("total_tokens", state.total_tokens)


# ---------------------------------------------------------------------------
# Anthropic Adapter
# ---------------------------------------------------------------------------

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(BaseProviderAdapter):
    """Anthropic Messages API adapter."""

    kind = "anthropic"
    default_model = "claude-3.7-sonnet"
    default_base_url = "https://api.anthropic.com/v1"
    pricing = ANTHROPIC_PRICING

    def _endpoint(self, model: str, *, stream: bool) -> str:
        return f"{self.base_url}/messages"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def validate_messages(self, messages: Any) -> list[Message]:
        validated = super().validate_messages(messages)
        conversation = [m for m in validated if m.role != Role.SYSTEM]
        if not conversation:
            raise InvalidMessageError(
                "At least one user or assistant message is required", provider=self.name
            )
        for prev, cur in zip(conversation, conversation[1:]):
            if prev.role == cur.role:
                raise InvalidMessageError(
                    f"Consecutive messages with the same role are not allowed: {cur.role.value}",
                    provider=self.name,
                )
        return validated

    def build_payload(self, messages: list[Message], options: GenerationOptions) -> dict[str, Any]:
        system = "\n\n".join(m.content for m in messages if m.role == Role.SYSTEM)
        payload = {
            "model": options.model or self.model,
            "messages": [m.to_dict() for m in messages if m.role != Role.SYSTEM],
            "max_tokens": options.max_tokens or self.max_tokens,
            "temperature": options.temperature if options.temperature is not None else self.temperature,
        }
        if system:
            payload["system"] = system
        payload.update(
            _drop_none(
                {
                    "top_p": options.top_p,
                    "top_k": options.top_k,
                    "stop_sequences": options.stop_sequences,
                    "tools": options.tools,
                    "tool_choice": options.tool_choice,
                }
            )
        )
        if options.stream:
            payload["stream"] = True
        return payload

    def parse_response(self, data: dict[str, Any], model: str) -> NormalizedResult:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise InvalidResponseFormatError("Invalid response format: missing content", provider=self.name)

        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
        tool_calls = tuple(
            ToolCall(id=b.get("id", ""), name=b.get("name", ""), arguments=b.get("input"))
            for b in blocks
            if b.get("type") == "tool_use"
        )

        usage = data.get("usage") or {}
        return NormalizedResult(
            content=text,
            model=data.get("model", model),
            provider=self.name,
            tokens=TokenUsage(
                prompt=usage.get("input_tokens", 0),
                completion=usage.get("output_tokens", 0),
                cached_prompt=usage.get("cache_read_input_tokens", 0) or 0,
            ),
            finish_reason=data.get("stop_reason") or "",
            id=data.get("id") or _generated_id(self.kind),
            tool_calls=tool_calls or None,
        )

    def _consume_stream_event(self, event: dict[str, Any], state: _StreamState) -> None:
        event_type = event.get("type")
        if event_type == "message_start":
            message = event.get("message") or {}
            state.id = message.get("id") or state.id
            state.model = message.get("model") or state.model
            state.prompt_tokens = (message.get("usage") or {}).get("input_tokens", 0)
        elif event_type == "content_block_delta":
            delta = event.get("delta") or {}
            if delta.get("text"):
                state.parts.append(delta["text"])
        elif event_type == "message_delta":
            delta = event.get("delta") or {}
            state.finish_reason = delta.get("stop_reason") or state.finish_reason
            state.completion_tokens = (event.get("usage") or {}).get("output_tokens", state.completion_tokens)


# ---------------------------------------------------------------------------
# Google Adapter
# ---------------------------------------------------------------------------


class GoogleAdapter(BaseProviderAdapter):
    """Google generateContent adapter."""

    kind = "google"
    default_model = "gemini-2.0-flash"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"
    pricing = GOOGLE_PRICING

    def _endpoint(self, model: str, *, stream: bool) -> str:
        if stream:
            return f"{self.base_url}/models/{model}:streamGenerateContent?alt=sse"
        return f"{self.base_url}/models/{model}:generateContent"

    def _headers(self) -> dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def build_payload(self, messages: list[Message], options: GenerationOptions) -> dict[str, Any]:
        system = "\n\n".join(m.content for m in messages if m.role == Role.SYSTEM)
        contents = [
            {
                "role": "model" if m.role == Role.ASSISTANT else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != Role.SYSTEM
        ]
        generation_config = {
            "temperature": options.temperature if options.temperature is not None else self.temperature,
            "maxOutputTokens": options.max_tokens or self.max_tokens,
            "candidateCount": 1,
        }
        generation_config.update(
            _drop_none(
                {
                    "topP": options.top_p,
                    "topK": options.top_k,
                    "stopSequences": options.stop_sequences,
                    "seed": options.seed,
                }
            )
        )
        if options.response_format and options.response_format.get("type") == "json_object":
            generation_config["responseMimeType"] = "application/json"

        payload: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        if options.tools:
            payload["tools"] = options.tools
        if options.safety_settings:
            payload["safetySettings"] = options.safety_settings
        return payload

    def parse_response(self, data: dict[str, Any], model: str) -> NormalizedResult:
        candidates = data.get("candidates")
        if not candidates:
            raise InvalidResponseFormatError("Invalid response format: no candidates", provider=self.name)
        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []

        text = "".join(p.get("text", "") for p in parts)
        tool_calls = tuple(
            ToolCall(
                id=f"call_{i}",
                name=p["functionCall"].get("name", ""),
                arguments=p["functionCall"].get("args"),
            )
            for i, p in enumerate(parts)
            if "functionCall" in p
        )

        usage = data.get("usageMetadata") or {}
        return NormalizedResult(
            content=text,
            model=data.get("modelVersion", model),
            provider=self.name,
            tokens=TokenUsage(
                prompt=usage.get("promptTokenCount", 0),
                completion=usage.get("candidatesTokenCount", 0),
                total=usage.get("totalTokenCount", 0),
                cached_prompt=usage.get("cachedContentTokenCount", 0),
            ),
            finish_reason=candidate.get("finishReason") or "",
            id=data.get("responseId") or _generated_id(self.kind),
            tool_calls=tool_calls or None,
        )

    def _consume_stream_event(self, event: dict[str, Any], state: _StreamState) -> None:
        state.id = event.get("responseId") or state.id
        state.model = event.get("modelVersion") or state.model
        for candidate in event.get("candidates") or []:
            for part in (candidate.get("content") or {}).get("parts") or []:
                if part.get("text"):
                    state.parts.append(part["text"])
            if candidate.get("finishReason"):
                state.finish_reason = candidate["finishReason"]
        usage = event.get("usageMetadata")
        if usage:
            state.prompt_tokens = usage.get("promptTokenCount", state.prompt_tokens)
            state.completion_tokens = usage.get("candidatesTokenCount", state.completion_tokens)
            state.total_tokens = usage.get("totalTokenCount", state.total_tokens)


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[str, type[BaseProviderAdapter]] = {
    OpenAIAdapter.kind: OpenAIAdapter,
    AnthropicAdapter.kind: AnthropicAdapter,
    GoogleAdapter.kind: GoogleAdapter,
}


def get_adapter(kind: str, api_key: str, **kwargs) -> BaseProviderAdapter:
    """Factory: get the appropriate adapter for a backend kind."""
    cls = ADAPTER_REGISTRY.get(kind)
    if cls is None:
        raise ConfigurationError(f"No adapter registered for provider kind: {kind}")
    return cls(api_key=api_key, **kwargs)


def create_adapters(settings) -> dict[str, BaseProviderAdapter]:
    """Instantiate every backend that has an API key configured."""
    adapters: dict[str, BaseProviderAdapter] = {}
    for kind in ADAPTER_REGISTRY:
        api_key = getattr(settings, f"{kind}_api_key", "")
        if not api_key:
            continue
        adapters[kind] = get_adapter(
            kind,
            api_key,
            model=getattr(settings, f"{kind}_model", None) or None,
            base_url=getattr(settings, f"{kind}_base_url", None) or None,
            timeout_ms=settings.request_timeout_ms,
        )
        logger.info("Configured provider %s (model=%s)", kind, adapters[kind].model)
    return adapters
