"""Document ingestion pipeline: extract, chunk, embed, store, update status."""

import asyncio
from typing import List, Optional, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession

from document_chat.config import Settings, get_settings
from document_chat.database.models import Document
from document_chat.models.chunk import TextChunk
from document_chat.models.document import DocumentStatus, ExtractedDocument
from document_chat.models.ingestion import BatchOutcome, ChunkOutcome, ProcessingResult
from document_chat.repositories.document_repository import DocumentRepository
from document_chat.services.chunking_service import ChunkingService, normalize_text
from document_chat.services.embedding_service import EmbeddingService
from document_chat.services.parser_service import ParserService
from document_chat.services.storage_service import StorageService
from document_chat.services.vector_store import VectorStore
from document_chat.utils.errors import (
    DocumentChatException,
    IngestionException,
    IngestionTimeoutError,
    NotFoundError,
    UnreadableDocumentError,
)
from document_chat.utils.logging import get_logger

logger = get_logger("ingestion_service")


class IngestionService:
    """
    Drive one document through the ingestion pipeline.

    Processing pipeline:
    1. Move the document from uploading to processing
    2. Download the file from storage
    3. Extract text (fails fast when fewer than INGESTION_MIN_TEXT_LENGTH characters)
    4. Chunk text
    5. Embed chunks in concurrent batches and store each embedded chunk
    6. Mark the document completed, or failed with the error message

    A chunk that fails to embed or store is logged and skipped. Configuration
    errors are fatal, as is a run where no chunk could be stored.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        storage_service: Optional[StorageService] = None,
        parser_service: Optional[ParserService] = None,
        chunking_service: Optional[ChunkingService] = None,
        embedding_service: Optional[EmbeddingService] = None,
        vector_store: Optional[VectorStore] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session = session
        self.documents = DocumentRepository(session)
        self.storage_service = storage_service or StorageService(self.settings)
        self.parser_service = parser_service or ParserService()
        self.chunking_service = chunking_service or ChunkingService(self.settings)
        self.embedding_service = embedding_service or EmbeddingService(self.settings)
        self.vector_store = vector_store or VectorStore(self.settings)

    async def process_document(
        self,
        document_id: str,
        owner_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ProcessingResult:
        """
        Process a document end to end.

        Args:
            document_id: Document to process
            owner_id: When given, the document must belong to this user
            timeout: Optional limit in seconds for the pipeline, from download to the last stored chunk

        Returns:
            ProcessingResult with stored chunk and page counts

        Raises:
            NotFoundError: Unknown document (or not owned by ``owner_id``)
            InvalidStatusTransitionError: Document is not in the uploading state
            DocumentChatException: Any fatal pipeline error, after the
                document has been marked failed
        """
        if owner_id is not None:
            document = await self.documents.get_owned(document_id, owner_id)
        else:
            document = await self.documents.get_by_id(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)

        await self.documents.transition(document, DocumentStatus.PROCESSING)
        await self.session.commit()
        logger.info(
            f"Processing document: document_id={document.id}, name={document.name}, "
            f"path={document.file_path}"
        )

        try:
            pipeline = self._run_pipeline(document)
            if timeout is not None:
                extracted, outcome = await asyncio.wait_for(pipeline, timeout=timeout)
            else:
                extracted, outcome = await pipeline
            self._check_outcome(outcome)
        except asyncio.TimeoutError:
            error = IngestionTimeoutError(timeout, document_id=document_id)
            await self._mark_failed(document_id, error)
            raise error
        except Exception as e:
            await self._mark_failed(document_id, e)
            raise

        stored = outcome.stored_count
        await self.documents.transition(
            document,
            DocumentStatus.COMPLETED,
            total_pages=extracted.total_pages,
            total_chunks=stored,
            error_message=None,
        )
        await self.session.commit()

        logger.info(
            f"Document processed successfully: document_id={document_id}, "
            f"chunks={stored}, failed_chunks={len(outcome.failed)}, pages={extracted.total_pages}"
        )
        return ProcessingResult(
            success=True,
            chunks_processed=stored,
            total_pages=extracted.total_pages,
            chunks_failed=len(outcome.failed),
        )

    async def _run_pipeline(self, document: Document) -> Tuple[ExtractedDocument, BatchOutcome]:
        file_data = await self.storage_service.download_file(document.file_path)

        extracted = await self.parser_service.extract(
            file_data, mime_type=document.mime_type, filename=document.original_name
        )
        if len(extracted.text.strip()) < self.settings.ingestion.min_text_length:
            raise UnreadableDocumentError(details={"document_id": document.id})
        logger.info(
            f"Document parsed: document_id={document.id}, text_length={len(extracted.text)}, "
            f"pages={extracted.total_pages}"
        )

        chunks = self.chunking_service.chunk_text(extracted.text)
        chunks = self.chunking_service.assign_page_numbers(
            chunks,
            text_length=len(normalize_text(extracted.text)),
            total_pages=extracted.total_pages,
        )
        logger.info(f"Document chunked: document_id={document.id}, chunks={len(chunks)}")

        outcome = await self._embed_and_store(document, chunks)
        return extracted, outcome

    async def _embed_and_store(self, document: Document, chunks: List[TextChunk]) -> BatchOutcome:
        """Embed chunks in concurrent batches; store successes with contiguous indices."""
        batch_size = self.settings.ingestion.batch_size
        outcome = BatchOutcome()
        next_index = 0

        for start in range(0, len(chunks), batch_size):
            batch = chunks[start : start + batch_size]
            vectors = await asyncio.gather(*(self._embed_chunk(chunk) for chunk in batch))

            for chunk, vector in zip(batch, vectors):
                if isinstance(vector, Exception):
                    outcome.outcomes.append(
                        ChunkOutcome(chunk_index=chunk.chunk_index, stored=False, error=vector)
                    )
                    continue
                stored_chunk = chunk.model_copy(update={"chunk_index": next_index})
                try:
                    point_id = await self.vector_store.upsert_chunk(
                        document_id=document.id,
                        user_id=document.user_id,
                        document_name=document.name,
                        chunk=stored_chunk,
                        embedding=vector,
                    )
                except Exception as e:
                    logger.warning(
                        f"Failed to store chunk {chunk.chunk_index} of document {document.id}: {e}"
                    )
                    outcome.outcomes.append(
                        ChunkOutcome(chunk_index=chunk.chunk_index, stored=False, error=e)
                    )
                    continue
                next_index += 1
                outcome.outcomes.append(
                    ChunkOutcome(chunk_index=chunk.chunk_index, stored=True, point_id=point_id)
                )

            if outcome.configuration_error is not None:
                # every remaining chunk would fail the same way
                break

            processed = start + len(batch)
            logger.info(
                f"Batch complete: document_id={document.id}, processed={processed}/{len(chunks)}, "
                f"stored={outcome.stored_count}"
            )
            if processed < len(chunks) and self.settings.ingestion.batch_delay > 0:
                await asyncio.sleep(self.settings.ingestion.batch_delay)

        return outcome

    async def _embed_chunk(self, chunk: TextChunk) -> Union[List[float], Exception]:
        try:
            return await self.embedding_service.embed(chunk.content)
        except Exception as e:
            logger.warning(f"Failed to embed chunk {chunk.chunk_index}: {e}")
            return e

    def _check_outcome(self, outcome: BatchOutcome) -> None:
        config_error = outcome.configuration_error
        if config_error is not None:
            raise config_error
        if outcome.outcomes and outcome.stored_count == 0:
            first_error = outcome.failed[0].error_message
            raise IngestionException(
                "No chunks could be embedded",
                details={"chunks": len(outcome.outcomes), "first_error": first_error},
            )

    async def _mark_failed(self, document_id: str, error: Exception) -> None:
        """Record a fatal error on the document. Never raises."""
        message = error.message if isinstance(error, DocumentChatException) else str(error)
        logger.error(
            f"Ingestion pipeline failed: document_id={document_id} - {message}",
            exc_info=error,
        )
        try:
            await self.session.rollback()
            document = await self.documents.get_by_id(document_id)
            if document is not None:
                await self.documents.transition(
                    document, DocumentStatus.FAILED, error_message=message or type(error).__name__
                )
                await self.session.commit()
        except Exception as update_error:
            logger.error(
                f"Failed to update status to failed: document_id={document_id} - {update_error}",
                exc_info=True,
            )

        try:
            await self.vector_store.delete_document_chunks(document_id)
        except Exception as cleanup_error:
            logger.warning(f"Failed to remove partial chunks for {document_id}: {cleanup_error}")
