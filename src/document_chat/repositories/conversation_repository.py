"""Conversation and message repositories."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from document_chat.database.models import Conversation, Message
from document_chat.repositories.base import BaseRepository
from document_chat.utils.errors import DatabaseError

logger = logging.getLogger(__name__)


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for conversations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Conversation, session)

    async def touch(self, conversation_id: str) -> None:
        """Bump ``updated_at`` so recently active conversations sort first."""
        try:
            await self.session.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(updated_at=datetime.utcnow())
            )
        except SQLAlchemyError as e:
            logger.error(f"Error touching conversation {conversation_id}: {e}")
            raise DatabaseError("Failed to update conversation") from e

    async def list_recent(self, user_id: str, skip: int = 0, limit: int = 100) -> List[Conversation]:
        """List a user's conversations, most recently active first."""
        try:
            result = await self.session.execute(
                select(Conversation)
                .where(Conversation.user_id == user_id)
                .order_by(Conversation.updated_at.desc())
                .offset(skip)
                .limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing conversations for user {user_id}: {e}")
            raise DatabaseError("Failed to retrieve conversations") from e


class MessageRepository(BaseRepository[Message]):
    """Repository for append-only conversation messages."""

    def __init__(self, session: AsyncSession):
        super().__init__(Message, session)

    async def add(
        self,
        conversation_id: str,
        user_id: str,
        role: str,
        content: str,
        sources: Optional[List[Dict[str, Any]]] = None,
    ) -> Message:
        """Append a message to a conversation."""
        return await self.create(
            conversation_id=conversation_id,
            user_id=user_id,
            role=role,
            content=content,
            sources=sources,
        )

    async def list_for_conversation(self, conversation_id: str) -> List[Message]:
        """All messages of a conversation in creation order."""
        try:
            result = await self.session.execute(
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc())
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing messages for conversation {conversation_id}: {e}")
            raise DatabaseError("Failed to retrieve messages") from e

    async def delete_for_conversation(self, conversation_id: str) -> int:
        """Delete every message of a conversation. Returns the number removed."""
        try:
            result = await self.session.execute(
                delete(Message).where(Message.conversation_id == conversation_id)
            )
            await self.session.flush()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting messages for conversation {conversation_id}: {e}")
            await self.session.rollback()
            raise DatabaseError("Failed to delete messages") from e

    async def count_for_conversation(self, conversation_id: str, role: Optional[str] = None) -> int:
        """Count messages in a conversation, optionally by role."""
        try:
            query = select(func.count()).select_from(Message).where(
                Message.conversation_id == conversation_id
            )
            if role:
                query = query.where(Message.role == role)
            result = await self.session.execute(query)
            return result.scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Error counting messages for conversation {conversation_id}: {e}")
            raise DatabaseError("Failed to count messages") from e
