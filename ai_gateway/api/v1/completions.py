"""Chat completions through the gateway."""

from fastapi import APIRouter, Depends

from ai_gateway.core.dependencies import get_gateway
from ai_gateway.gateway.gateway import AIGateway
from ai_gateway.schemas.completion import CompletionRequest, ErrorResponse

router = APIRouter(prefix="/completions", tags=["completions"])


@router.post(
    "",
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def create_completion(body: CompletionRequest, gateway: AIGateway = Depends(get_gateway)):
    result = await gateway.generate_completion(body.messages, body.options)
    return result.to_dict()
