"""Provider registry, health checks and model selection helpers."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from ai_gateway.core.dependencies import get_gateway
from ai_gateway.core.exceptions import ProviderNotFoundError
from ai_gateway.gateway.gateway import AIGateway
from ai_gateway.gateway.recommendations import (
    ModelRequirements,
    get_config_for_tier,
    get_cost_estimates,
    recommend_provider_and_model,
)

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("")
async def list_providers(gateway: AIGateway = Depends(get_gateway)):
    return {
        "default_provider": gateway.config.default_provider,
        "providers": [
            gateway.get_provider(name).get_provider_info() for name in gateway.get_available_providers()
        ],
    }


@router.get("/health")
async def providers_health(gateway: AIGateway = Depends(get_gateway)):
    records = await gateway.get_providers_health()
    return {name: rec.to_dict() for name, rec in records.items()}


@router.get("/recommendation")
async def recommendation(
    budget: str = Query("standard", pattern="^(budget|standard|premium)$"),
    needs_vision: bool = False,
    needs_audio: bool = False,
    needs_video: bool = False,
    needs_reasoning: bool = False,
    context_length: int = Query(0, ge=0),
    preferred_provider: str | None = None,
):
    requirements = ModelRequirements(
        budget=budget,
        needs_vision=needs_vision,
        needs_audio=needs_audio,
        needs_video=needs_video,
        needs_reasoning=needs_reasoning,
        context_length=context_length,
        preferred_provider=preferred_provider,
    )
    return asdict(recommend_provider_and_model(requirements))


@router.get("/cost-estimates")
async def cost_estimates(
    input_tokens: int = Query(1_000_000, ge=0),
    output_tokens: int = Query(250_000, ge=0),
    cached_input_ratio: float = Query(0.0, ge=0.0, le=1.0),
):
    estimates = get_cost_estimates(input_tokens, output_tokens, cached_input_ratio)
    return {
        provider: {model: asdict(est) for model, est in models.items()}
        for provider, models in estimates.items()
    }


@router.get("/tiers/{tier}")
async def tier_config(tier: str):
    return {provider: asdict(defaults) for provider, defaults in get_config_for_tier(tier).items()}


@router.get("/{name}/health")
async def provider_health(name: str, gateway: AIGateway = Depends(get_gateway)):
    if not gateway.is_provider_available(name):
        raise ProviderNotFoundError(f"Provider '{name}' not found", provider=name)
    record = await gateway.check_provider_health(name)
    return record.to_dict()
