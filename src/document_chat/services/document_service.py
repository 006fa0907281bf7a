"""Document registration, listing and deletion."""

import os
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from document_chat.config import Settings, get_settings
from document_chat.database.models import Document
from document_chat.models.document import DocumentStatus
from document_chat.repositories.document_repository import DocumentRepository
from document_chat.services.parser_service import PDF_MIME_TYPE
from document_chat.services.vector_store import VectorStore
from document_chat.utils.errors import NotFoundError, ValidationError
from document_chat.utils.logging import get_logger

logger = get_logger("document_service")


def display_name(original_name: str) -> str:
    """Filename without its extension, e.g. ``report.v2.pdf`` -> ``report.v2``."""
    base = os.path.basename(original_name)
    root, _ = os.path.splitext(base)
    return root or base


class DocumentService:
    """Manage a user's uploaded documents."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        vector_store: Optional[VectorStore] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session = session
        self.documents = DocumentRepository(session)
        self.vector_store = vector_store or VectorStore(self.settings)

    async def register_document(
        self,
        owner_id: str,
        original_name: str,
        file_path: str,
        file_size: int,
        mime_type: str = PDF_MIME_TYPE,
    ) -> Document:
        """
        Register an uploaded file in the ``uploading`` state.

        Raises:
            ValidationError: If the file is not a PDF or exceeds the size limit
        """
        if mime_type != PDF_MIME_TYPE:
            raise ValidationError("Please upload a PDF file", errors={"mime_type": mime_type})
        max_bytes = self.settings.ingestion.max_upload_size_bytes
        if file_size > max_bytes:
            raise ValidationError(
                f"File size must be less than {self.settings.ingestion.max_upload_size_mb}MB",
                errors={"file_size": file_size, "max_size": max_bytes},
            )

        document = await self.documents.create(
            user_id=owner_id,
            name=display_name(original_name),
            original_name=original_name,
            file_path=file_path,
            file_size=file_size,
            mime_type=mime_type,
            status=DocumentStatus.UPLOADING,
        )
        logger.info(f"Document registered: id={document.id}, name={document.name}, user={owner_id}")
        return document

    async def list_documents(self, owner_id: str) -> List[Document]:
        return await self.documents.list_owned(owner_id)

    async def get_document(self, owner_id: str, document_id: str) -> Document:
        document = await self.documents.get_owned(document_id, owner_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        return document

    async def delete_document(self, owner_id: str, document_id: str) -> None:
        """Delete a document's chunks, then the document itself."""
        document = await self.get_document(owner_id, document_id)
        await self.vector_store.delete_document_chunks(document.id)
        await self.documents.delete(document)
        logger.info(f"Document deleted: id={document_id}, user={owner_id}")
