from ai_gateway.models.ai_conversation import AiConversation

__all__ = [
    "AiConversation",
]
