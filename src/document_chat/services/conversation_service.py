"""Conversation management."""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from document_chat.database.models import Conversation, Message
from document_chat.repositories.conversation_repository import (
    ConversationRepository,
    MessageRepository,
)
from document_chat.services.prompt_builder import DEFAULT_CONVERSATION_TITLE
from document_chat.utils.errors import NotFoundError
from document_chat.utils.logging import get_logger

logger = get_logger("conversation_service")


class ConversationService:
    """Create, list and delete a user's conversations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.conversations = ConversationRepository(session)
        self.messages = MessageRepository(session)

    async def create_conversation(self, owner_id: str, title: Optional[str] = None) -> Conversation:
        conversation = await self.conversations.create(
            user_id=owner_id, title=(title or "").strip() or DEFAULT_CONVERSATION_TITLE
        )
        logger.info(f"Conversation created: id={conversation.id}, user={owner_id}")
        return conversation

    async def list_conversations(self, owner_id: str) -> List[Conversation]:
        return await self.conversations.list_recent(owner_id)

    async def get_conversation(self, owner_id: str, conversation_id: str) -> Conversation:
        conversation = await self.conversations.get_owned(conversation_id, owner_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    async def get_messages(self, owner_id: str, conversation_id: str) -> List[Message]:
        """Messages of an owned conversation, oldest first."""
        conversation = await self.get_conversation(owner_id, conversation_id)
        return await self.messages.list_for_conversation(conversation.id)

    async def delete_conversation(self, owner_id: str, conversation_id: str) -> None:
        """Delete a conversation and all of its messages."""
        conversation = await self.get_conversation(owner_id, conversation_id)
        removed = await self.messages.delete_for_conversation(conversation.id)
        await self.conversations.delete(conversation)
        logger.info(f"Conversation deleted: id={conversation_id}, messages={removed}")
