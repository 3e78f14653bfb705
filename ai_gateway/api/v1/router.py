from fastapi import APIRouter

from ai_gateway.api.v1.completions import router as completions_router
from ai_gateway.api.v1.conversations import router as conversations_router
from ai_gateway.api.v1.providers import router as providers_router
from ai_gateway.api.v1.usage import router as usage_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(completions_router)
api_v1_router.include_router(conversations_router)
api_v1_router.include_router(providers_router)
api_v1_router.include_router(usage_router)
