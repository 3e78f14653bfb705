"""create_ai_conversations

Revision ID: a7c1e2f3b4d5
Revises:
Create Date: 2026-10-19 10:12:31.402117

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "a7c1e2f3b4d5"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "ai_conversations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("conversation_id", sa.String(length=64), nullable=False),
        sa.Column("profile_id", sa.String(length=64), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=False, server_default="anonymous"),
        sa.Column("provider", sa.String(length=30), nullable=False),
        sa.Column("model", sa.String(length=80), nullable=False),
        sa.Column("conversation_type", sa.String(length=30), nullable=False, server_default="completion"),
        sa.Column("input_data", postgresql.JSONB(), nullable=False),
        sa.Column("output_data", postgresql.JSONB(), nullable=False),
        sa.Column("tokens_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost_usd", sa.Float(), nullable=False, server_default="0"),
        sa.Column("duration_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ai_conversations_conversation_id", "ai_conversations", ["conversation_id"])
    op.create_index("ix_ai_conversations_profile_id", "ai_conversations", ["profile_id"])


def downgrade() -> None:
    op.drop_index("ix_ai_conversations_profile_id", table_name="ai_conversations")
    op.drop_index("ix_ai_conversations_conversation_id", table_name="ai_conversations")
    op.drop_table("ai_conversations")
