"""Usage statistics. DELETE resets every counter (operator action)."""

from fastapi import APIRouter, Depends

from ai_gateway.core.dependencies import get_gateway
from ai_gateway.core.exceptions import ProviderNotFoundError
from ai_gateway.gateway.gateway import AIGateway

router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("")
async def get_usage(gateway: AIGateway = Depends(get_gateway)):
    return gateway.get_usage_stats().to_dict()


@router.get("/{name}")
async def get_provider_usage(name: str, gateway: AIGateway = Depends(get_gateway)):
    counters = gateway.get_provider_usage(name)
    if counters is None:
        raise ProviderNotFoundError(f"Provider '{name}' not found", provider=name)
    return counters.to_dict()


@router.delete("")
async def reset_usage(gateway: AIGateway = Depends(get_gateway)):
    await gateway.reset_usage_stats()
    return {"status": "reset"}
