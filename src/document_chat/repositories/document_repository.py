"""Document repository."""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from document_chat.database.models import Document
from document_chat.models.document import DocumentStatus
from document_chat.repositories.base import BaseRepository
from document_chat.utils.errors import DatabaseError, InvalidStatusTransitionError

logger = logging.getLogger(__name__)


class DocumentRepository(BaseRepository[Document]):
    """Repository for document records and their status transitions."""

    def __init__(self, session: AsyncSession):
        super().__init__(Document, session)

    async def completed_ids(self, user_id: str) -> List[str]:
        """IDs of a user's documents that finished processing."""
        try:
            result = await self.session.execute(
                select(Document.id).where(
                    Document.user_id == user_id,
                    Document.status == DocumentStatus.COMPLETED,
                )
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing completed documents for user {user_id}: {e}")
            raise DatabaseError("Failed to retrieve completed documents") from e

    async def transition(self, document: Document, target: DocumentStatus, **fields) -> Document:
        """
        Move a document to ``target`` status, applying extra field updates.

        Raises:
            InvalidStatusTransitionError: if the lifecycle does not allow the move
        """
        current = DocumentStatus(document.status)
        if not current.can_transition_to(target):
            raise InvalidStatusTransitionError(current.value, target.value, document_id=document.id)
        logger.info(f"Document {document.id}: {current.value} -> {target.value}")
        return await self.update(document, status=target, **fields)
