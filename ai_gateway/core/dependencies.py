from fastapi import Request

from ai_gateway.gateway.gateway import AIGateway


def get_gateway(request: Request) -> AIGateway:
    return request.app.state.gateway
