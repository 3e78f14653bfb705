from collections.abc import Callable
from typing import Any

import httpx
import pytest

from ai_gateway.core.config import settings

# Override settings for tests
settings.app_env = "test"
settings.persist_conversations = False
settings.openai_api_key = ""
settings.anthropic_api_key = ""
settings.google_api_key = ""

from ai_gateway.gateway.pricing import ModelPrice  # noqa: E402
from ai_gateway.gateway.retry import RetryExecutor  # noqa: E402
from ai_gateway.gateway.types import GenerationOptions, Message, NormalizedResult, TokenUsage  # noqa: E402
from ai_gateway.gateway.vendor_adapters import BaseProviderAdapter  # noqa: E402

TEST_API_KEY = "sk-test-secret-0123456789"


def make_result(
    content: str = "Hi",
    provider: str = "mockA",
    model: str = "mock-1",
    prompt: int = 5,
    completion: int = 2,
    total: int = 7,
    **kwargs,
) -> NormalizedResult:
    return NormalizedResult(
        content=content,
        model=model,
        provider=provider,
        tokens=TokenUsage(prompt=prompt, completion=completion, total=total),
        finish_reason=kwargs.pop("finish_reason", "stop"),
        id=kwargs.pop("id", "abc"),
        **kwargs,
    )


class ScriptedAdapter(BaseProviderAdapter):
    """Adapter that replays a script of results/exceptions instead of calling HTTP.

    The last script entry repeats once the script is exhausted.
    """

    kind = "mock"
    default_model = "mock-1"
    default_base_url = "https://mock.example.com"
    pricing = {"mock-1": ModelPrice(input=1.0, output=2.0)}

    def __init__(self, name: str, script: list[Any] | Callable[[int], Any], **kwargs):
        super().__init__(kwargs.pop("api_key", TEST_API_KEY), name=name, **kwargs)
        self.script = script
        self.calls = 0
        self.seen_options: list[GenerationOptions] = []

    async def completion(self, messages, options=None) -> NormalizedResult:
        self.calls += 1
        self.seen_options.append(options)
        if callable(self.script):
            outcome = self.script(self.calls)
        else:
            outcome = self.script[min(self.calls, len(self.script)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def build_payload(self, messages: list[Message], options: GenerationOptions) -> dict:
        return {"messages": [m.to_dict() for m in messages]}

    def parse_response(self, data: dict, model: str) -> NormalizedResult:
        return make_result(provider=self.name, model=model)

    def _endpoint(self, model: str, *, stream: bool) -> str:
        return f"{self.base_url}/complete"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _consume_stream_event(self, event, state) -> None:
        pass


class RecordingSleep:
    """Drop-in for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fast_executor(recording_sleep) -> Callable[..., RetryExecutor]:
    def _make(**kwargs) -> RetryExecutor:
        kwargs.setdefault("max_retries", 3)
        kwargs.setdefault("base_delay_ms", 1000)
        return RetryExecutor(sleep=recording_sleep, **kwargs)

    return _make


def make_httpx_response(
    status_code: int,
    json_data: dict | None = None,
    text: str = "",
    headers: dict | None = None,
) -> httpx.Response:
    """Create a proper httpx.Response with request set."""
    request = httpx.Request("POST", "https://example.com")
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, request=request, headers=headers)
    return httpx.Response(status_code, text=text, request=request, headers=headers)
