"""Conversation logging: fire-and-continue persistence of completed calls.

The orchestrator hands a ConversationRecord to ConversationLogger.submit(),
which writes it on an independent asyncio.Task. A failed write is logged
and never reaches the caller. Stores:
  - InMemoryConversationStore: last 100 records per profile
  - SqlConversationStore: ai_conversations rows via SQLAlchemy async sessions
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
import time
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ai_gateway.gateway.types import ConversationRecord
from ai_gateway.models.ai_conversation import AiConversation

logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"
MAX_LOCAL_CONVERSATIONS = 100

_BASE36 = string.digits + string.ascii_lowercase


def generate_conversation_id() -> str:
    """``conv_<epoch-ms>_<9 random base36 chars>``."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"conv_{int(time.time() * 1000)}_{suffix}"


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class User:
    id: str
    email: str | None = None


@runtime_checkable
class IdentityProvider(Protocol):
    async def get_current_user(self) -> User | None: ...


class AnonymousIdentity:
    async def get_current_user(self) -> User | None:
        return None


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@runtime_checkable
class ConversationStore(Protocol):
    async def create(self, record: ConversationRecord) -> dict[str, Any]: ...

    async def get_by_id(self, conversation_id: str) -> dict[str, Any] | None: ...

    async def update(self, conversation_id: str, patch: dict[str, Any]) -> dict[str, Any]: ...

    async def delete(self, conversation_id: str) -> bool: ...

    async def list_by_profile(
        self, profile_id: str | None, limit: int = MAX_LOCAL_CONVERSATIONS
    ) -> list[dict[str, Any]]: ...


class InMemoryConversationStore:
    """Process-local store keeping the most recent records per profile."""

    def __init__(self, max_per_profile: int = MAX_LOCAL_CONVERSATIONS):
        self.max_per_profile = max_per_profile
        self._by_profile: dict[str | None, deque[dict[str, Any]]] = defaultdict(
            lambda: deque(maxlen=self.max_per_profile)
        )

    def _find(self, conversation_id: str) -> dict[str, Any] | None:
        for records in self._by_profile.values():
            for row in records:
                if row["conversation_id"] == conversation_id:
                    return row
        return None

    async def list_by_profile(
        self, profile_id: str | None, limit: int = MAX_LOCAL_CONVERSATIONS
    ) -> list[dict[str, Any]]:
        """Oldest first, at most ``limit`` of the most recent records."""
        records = list(self._by_profile.get(profile_id, ()))
        return records[-limit:] if limit > 0 else []

    async def create(self, record: ConversationRecord) -> dict[str, Any]:
        row = record.to_dict()
        self._by_profile[record.profile_id].append(row)
        return row

    async def get_by_id(self, conversation_id: str) -> dict[str, Any] | None:
        return self._find(conversation_id)

    async def update(self, conversation_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        row = self._find(conversation_id)
        if row is None:
            raise KeyError(conversation_id)
        row.update(patch)
        return row

    async def delete(self, conversation_id: str) -> bool:
        for records in self._by_profile.values():
            for row in records:
                if row["conversation_id"] == conversation_id:
                    records.remove(row)
                    return True
        return False


class SqlConversationStore:
    """Persists records to the ai_conversations table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _to_row(record: ConversationRecord) -> AiConversation:
        return AiConversation(
            id=uuid.uuid4(),
            conversation_id=record.conversation_id,
            profile_id=record.profile_id,
            user_id=record.user_id,
            provider=record.provider,
            model=record.result.model,
            conversation_type=record.conversation_type,
            input_data={"messages": [m.to_dict() for m in record.messages]},
            output_data=record.result.to_dict(),
            tokens_used=record.tokens.total,
            cost_usd=record.cost_usd,
            duration_ms=record.duration_ms,
            created_at=record.timestamp,
        )

    async def create(self, record: ConversationRecord) -> dict[str, Any]:
        row = self._to_row(record)
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
        return row.to_dict()

    async def get_by_id(self, conversation_id: str) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AiConversation).where(AiConversation.conversation_id == conversation_id)
            )
            row = result.scalars().first()
        return row.to_dict() if row else None

    async def update(self, conversation_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AiConversation).where(AiConversation.conversation_id == conversation_id)
            )
            row = result.scalars().first()
            if row is None:
                raise KeyError(conversation_id)
            for key, value in patch.items():
                if hasattr(AiConversation, key):
                    setattr(row, key, value)
            await session.commit()
        return row.to_dict()

    async def delete(self, conversation_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(AiConversation).where(AiConversation.conversation_id == conversation_id)
            )
            await session.commit()
        return bool(result.rowcount)

    async def list_by_profile(
        self, profile_id: str | None, limit: int = MAX_LOCAL_CONVERSATIONS
    ) -> list[dict[str, Any]]:
        if profile_id is None:
            condition = AiConversation.profile_id.is_(None)
        else:
            condition = AiConversation.profile_id == profile_id
        async with self._session_factory() as session:
            result = await session.execute(
                select(AiConversation).where(condition).order_by(AiConversation.created_at.desc()).limit(limit)
            )
            rows = result.scalars().all()
        return [row.to_dict() for row in reversed(rows)]


# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------


class ConversationLogger:
    """Writes records in the background; the caller never waits on storage."""

    def __init__(self, store: ConversationStore, identity: IdentityProvider | None = None):
        self.store = store
        self.identity = identity or AnonymousIdentity()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def resolve_user_id(self) -> str:
        try:
            user = await self.identity.get_current_user()
        except Exception as e:
            logger.warning("Identity lookup failed, attributing to %s: %s", ANONYMOUS_USER, e)
            return ANONYMOUS_USER
        return user.id if user else ANONYMOUS_USER

    def submit(self, record: ConversationRecord) -> asyncio.Task:
        task = asyncio.create_task(self._write(record), name=f"conversation-{record.conversation_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _write(self, record: ConversationRecord) -> None:
        try:
            await self.store.create(record)
        except Exception as e:
            logger.warning(
                "Failed to save conversation %s: %s",
                record.conversation_id,
                e,
                extra={"provider": record.provider, "conversation_id": record.conversation_id},
            )
            return
        logger.debug("Saved conversation %s", record.conversation_id)

    async def drain(self) -> None:
        """Wait for every outstanding write."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
