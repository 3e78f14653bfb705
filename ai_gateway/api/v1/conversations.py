"""Stored conversation history."""

from fastapi import APIRouter, Depends, HTTPException, Query

from ai_gateway.core.dependencies import get_gateway
from ai_gateway.gateway.gateway import AIGateway

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("")
async def list_conversations(
    profile_id: str | None = Query(None),
    limit: int = Query(100, ge=1, le=100),
    gateway: AIGateway = Depends(get_gateway),
):
    return await gateway.get_conversation_history(profile_id, limit)


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, gateway: AIGateway = Depends(get_gateway)):
    row = await gateway.get_conversation(conversation_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Conversation '{conversation_id}' not found")
    return row
