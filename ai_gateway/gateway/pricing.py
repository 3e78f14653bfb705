"""Static per-model price tables (USD per 1M tokens) and cost calculation."""

from __future__ import annotations

from dataclasses import dataclass

from ai_gateway.gateway.types import TokenUsage


@dataclass(frozen=True)
class ModelPrice:
    input: float
    output: float
    cached_input: float | None = None
    # Long-context tier, applied when the prompt exceeds context_threshold
    input_high: float | None = None
    output_high: float | None = None
    context_threshold: int | None = None


OPENAI_PRICING: dict[str, ModelPrice] = {
    "gpt-4.5-preview": ModelPrice(input=75.00, output=150.00, cached_input=37.50),
    "gpt-4.1": ModelPrice(input=2.00, output=8.00, cached_input=0.50),
    "gpt-4o": ModelPrice(input=2.50, output=10.00, cached_input=1.25),
    "gpt-4o-mini": ModelPrice(input=0.15, output=0.60, cached_input=0.075),
    "o3": ModelPrice(input=60.00, output=240.00, cached_input=30.00),
    "o3-mini": ModelPrice(input=1.10, output=4.40, cached_input=0.55),
    "o1": ModelPrice(input=15.00, output=60.00, cached_input=7.50),
    "gpt-4-turbo": ModelPrice(input=10.00, output=30.00),
    "gpt-3.5-turbo": ModelPrice(input=0.50, output=1.50),
}

ANTHROPIC_PRICING: dict[str, ModelPrice] = {
    "claude-4-opus": ModelPrice(input=15.00, output=75.00),
    "claude-4-sonnet": ModelPrice(input=3.00, output=15.00),
    "claude-3.7-sonnet": ModelPrice(input=3.00, output=15.00),
    "claude-3.5-sonnet": ModelPrice(input=3.00, output=15.00),
    "claude-3.5-haiku": ModelPrice(input=0.80, output=4.00),
    "claude-3-opus": ModelPrice(input=15.00, output=75.00),
    "claude-3-haiku": ModelPrice(input=0.25, output=1.25),
}

GOOGLE_PRICING: dict[str, ModelPrice] = {
    "gemini-2.5-pro": ModelPrice(
        input=1.25, output=10.00, input_high=2.50, output_high=15.00, context_threshold=200_000
    ),
    "gemini-2.0-flash": ModelPrice(input=0.10, output=0.40),
    "gemini-2.0-flash-lite": ModelPrice(input=0.075, output=0.30),
    "gemini-1.5-pro": ModelPrice(
        input=1.25, output=5.00, input_high=2.50, output_high=10.00, context_threshold=128_000
    ),
    "gemini-1.5-flash": ModelPrice(
        input=0.075, output=0.30, input_high=0.15, output_high=0.60, context_threshold=128_000
    ),
    "gemini-1.5-flash-8b": ModelPrice(
        input=0.0375, output=0.15, input_high=0.075, output_high=0.30, context_threshold=128_000
    ),
}

PROMPT_CACHING_DISCOUNT = 0.1
BATCH_DISCOUNT = 0.5


def calculate_cost(
    table: dict[str, ModelPrice],
    tokens: TokenUsage,
    model: str,
    *,
    batch_mode: bool = False,
    prompt_caching: bool = False,
    context_length: int = 0,
) -> float:
    """Cost in USD for one call. Unknown models cost 0.0."""
    price = table.get(model)
    if price is None:
        return 0.0

    input_rate, output_rate = price.input, price.output
    if (
        price.context_threshold is not None
        and context_length > price.context_threshold
        and price.input_high is not None
        and price.output_high is not None
    ):
        input_rate, output_rate = price.input_high, price.output_high

    cached = min(tokens.cached_prompt, tokens.prompt)
    regular = tokens.prompt - cached
    cached_rate = price.cached_input if price.cached_input is not None else input_rate

    input_cost = (regular * input_rate + cached * cached_rate) / 1_000_000
    if prompt_caching:
        input_cost *= PROMPT_CACHING_DISCOUNT
    output_cost = tokens.completion * output_rate / 1_000_000

    total = input_cost + output_cost
    if batch_mode:
        total *= BATCH_DISCOUNT
    return round(total, 6)


PROVIDER_PRICING: dict[str, dict[str, ModelPrice]] = {
    "openai": OPENAI_PRICING,
    "anthropic": ANTHROPIC_PRICING,
    "google": GOOGLE_PRICING,
}
