"""Repositories package."""

from document_chat.repositories.base import BaseRepository
from document_chat.repositories.conversation_repository import (
    ConversationRepository,
    MessageRepository,
)
from document_chat.repositories.document_repository import DocumentRepository

__all__ = [
    "BaseRepository",
    "DocumentRepository",
    "ConversationRepository",
    "MessageRepository",
]
