import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from ai_gateway.db.base import Base

_JSON = JSON().with_variant(JSONB(), "postgresql")


class AiConversation(Base):
    """One completed gateway call, written after the result is returned."""

    __tablename__ = "ai_conversations"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    profile_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, default="anonymous")
    provider: Mapped[str] = mapped_column(String(30), nullable=False)  # openai | anthropic | google
    model: Mapped[str] = mapped_column(String(80), nullable=False)
    conversation_type: Mapped[str] = mapped_column(String(30), nullable=False, default="completion")

    input_data: Mapped[dict] = mapped_column(_JSON, nullable=False)  # {"messages": [...]}
    output_data: Mapped[dict] = mapped_column(_JSON, nullable=False)  # normalized result
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost_usd: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "conversation_id": self.conversation_id,
            "profile_id": self.profile_id,
            "user_id": self.user_id,
            "provider": self.provider,
            "model": self.model,
            "conversation_type": self.conversation_type,
            "input_data": self.input_data,
            "output_data": self.output_data,
            "tokens_used": self.tokens_used,
            "cost_usd": self.cost_usd,
            "duration_ms": self.duration_ms,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
