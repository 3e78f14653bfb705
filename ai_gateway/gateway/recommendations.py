"""Model selection helpers over the static price tables.

  - recommend_provider_and_model(): backend + model for a workload profile
  - get_config_for_tier(): per-backend defaults for a cost tier
  - get_cost_estimates(): monthly cost of a usage pattern for every priced model
"""

from __future__ import annotations

from dataclasses import dataclass

from ai_gateway.core.exceptions import InvalidRequestError
from ai_gateway.gateway.pricing import PROVIDER_PRICING, ModelPrice, calculate_cost
from ai_gateway.gateway.types import TokenUsage

DEFAULT_TIER = "standard"
LONG_CONTEXT_THRESHOLD = 500_000


@dataclass(frozen=True)
class ModelRequirements:
    budget: str = DEFAULT_TIER  # budget | standard | premium
    needs_vision: bool = False
    needs_audio: bool = False
    needs_video: bool = False
    needs_reasoning: bool = False
    context_length: int = 0
    preferred_provider: str | None = None


@dataclass(frozen=True)
class Recommendation:
    provider: str
    model: str


@dataclass(frozen=True)
class TierDefaults:
    model: str
    temperature: float = 0.7
    max_tokens: int = 4000


@dataclass(frozen=True)
class CostEstimate:
    monthly_cost: float
    input_per_1m: float
    output_per_1m: float
    cached_input_per_1m: float | None = None


TIER_CONFIGS: dict[str, dict[str, TierDefaults]] = {
    "budget": {
        "openai": TierDefaults("gpt-4o-mini", max_tokens=2000),
        "google": TierDefaults("gemini-1.5-flash-8b", max_tokens=2000),
        "anthropic": TierDefaults("claude-3.5-haiku", max_tokens=2000),
    },
    "standard": {
        "openai": TierDefaults("gpt-4o"),
        "google": TierDefaults("gemini-2.0-flash"),
        "anthropic": TierDefaults("claude-3.7-sonnet"),
    },
    "premium": {
        "openai": TierDefaults("gpt-4.5-preview", max_tokens=8000),
        "google": TierDefaults("gemini-2.5-pro", max_tokens=8000),
        "anthropic": TierDefaults("claude-4-opus", max_tokens=8000),
    },
    "reasoning": {
        "openai": TierDefaults("o3-mini", temperature=0.3),
    },
    "multimodal": {
        "google": TierDefaults("gemini-2.0-flash"),
        "openai": TierDefaults("gpt-4o"),
    },
}


def get_config_for_tier(tier: str = DEFAULT_TIER) -> dict[str, TierDefaults]:
    """Unknown tiers get the standard configuration."""
    return TIER_CONFIGS.get(tier, TIER_CONFIGS[DEFAULT_TIER])


def recommend_provider_and_model(requirements: ModelRequirements | None = None) -> Recommendation:
    req = requirements or ModelRequirements()
    media = req.needs_vision or req.needs_video or req.needs_audio

    if req.budget == "budget":
        if req.needs_vision:
            return Recommendation("google", "gemini-1.5-flash-8b")
        return Recommendation("openai", "gpt-4o-mini")

    if req.budget == "premium":
        if req.needs_reasoning:
            return Recommendation("openai", "o3")
        if req.needs_video or req.needs_audio:
            return Recommendation("google", "gemini-2.5-pro")
        return Recommendation("openai", "gpt-4.5-preview")

    if req.context_length > LONG_CONTEXT_THRESHOLD:
        return Recommendation("google", "gemini-1.5-pro")
    if req.needs_reasoning:
        return Recommendation("openai", "o3-mini")
    if media:
        return Recommendation("google", "gemini-2.0-flash")
    if req.preferred_provider == "anthropic":
        return Recommendation("anthropic", "claude-4-sonnet")
    if req.preferred_provider == "google":
        return Recommendation("google", "gemini-2.0-flash")
    return Recommendation("openai", "gpt-4o")


def estimate_costs(
    table: dict[str, ModelPrice],
    input_tokens_per_month: int = 1_000_000,
    output_tokens_per_month: int = 250_000,
    cached_input_ratio: float = 0.0,
) -> dict[str, CostEstimate]:
    """Monthly cost per model in ``table``. Raises InvalidRequestError on bad usage figures."""
    if input_tokens_per_month < 0 or output_tokens_per_month < 0:
        raise InvalidRequestError("Token volumes must be non-negative")
    if not 0.0 <= cached_input_ratio <= 1.0:
        raise InvalidRequestError("cached_input_ratio must be between 0 and 1")

    tokens = TokenUsage(
        prompt=input_tokens_per_month,
        completion=output_tokens_per_month,
        cached_prompt=int(input_tokens_per_month * cached_input_ratio),
    )
    return {
        model: CostEstimate(
            monthly_cost=calculate_cost(table, tokens, model),
            input_per_1m=price.input,
            output_per_1m=price.output,
            cached_input_per_1m=price.cached_input,
        )
        for model, price in table.items()
    }


def get_cost_estimates(
    input_tokens_per_month: int = 1_000_000,
    output_tokens_per_month: int = 250_000,
    cached_input_ratio: float = 0.0,
) -> dict[str, dict[str, CostEstimate]]:
    return {
        provider: estimate_costs(table, input_tokens_per_month, output_tokens_per_month, cached_input_ratio)
        for provider, table in PROVIDER_PRICING.items()
    }
