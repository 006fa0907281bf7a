"""Similarity retrieval with a degraded fallback."""

from typing import List, Optional

from document_chat.config import Settings, get_settings
from document_chat.models.retrieval import RetrievalResult, RetrievalStrategy
from document_chat.repositories.document_repository import DocumentRepository
from document_chat.services.vector_store import VectorStore
from document_chat.utils.logging import get_logger

logger = get_logger("retrieval_service")


class RetrievalService:
    """
    Find the stored chunks most relevant to a query embedding.

    The primary strategy ranks chunks of the owner's completed documents by
    cosine similarity. If that search raises, up to ``limit`` of the owner's
    chunks are returned unranked. If the fallback also raises, the result is
    empty. An empty result is a normal outcome, never an exception.
    """

    def __init__(
        self,
        documents: DocumentRepository,
        vector_store: VectorStore,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.documents = documents
        self.vector_store = vector_store

    async def retrieve(
        self,
        query_embedding: List[float],
        owner_id: str,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> RetrievalResult:
        """
        Retrieve chunks for a query.

        Args:
            query_embedding: Embedded user query
            owner_id: Only this owner's chunks are considered
            threshold: Minimum similarity, exclusive (defaults to RETRIEVAL_SIMILARITY_THRESHOLD)
            limit: Maximum results (defaults to RETRIEVAL_LIMIT)

        Returns:
            RetrievalResult; ``strategy`` tells which path produced it
        """
        threshold = threshold if threshold is not None else self.settings.retrieval.similarity_threshold
        limit = limit if limit is not None else self.settings.retrieval.limit

        try:
            document_ids = await self.documents.completed_ids(owner_id)
            matches = await self.vector_store.match(
                query_embedding,
                owner_id=owner_id,
                document_ids=document_ids,
                threshold=threshold,
                limit=limit,
            )
            logger.info(f"Vector search found {len(matches)} chunks for user {owner_id}")
            strategy = RetrievalStrategy.SIMILARITY if matches else RetrievalStrategy.NONE
            return RetrievalResult(matches=matches, strategy=strategy)
        except Exception as search_error:
            logger.error(f"Similarity search failed, using fallback: {search_error}")

        try:
            matches = await self.vector_store.recent_chunks(owner_id, limit)
        except Exception as fallback_error:
            logger.error(f"Fallback retrieval failed: {fallback_error}")
            return RetrievalResult(strategy=RetrievalStrategy.NONE)

        logger.info(f"Fallback found {len(matches)} chunks for user {owner_id}")
        strategy = RetrievalStrategy.FALLBACK if matches else RetrievalStrategy.NONE
        return RetrievalResult(matches=matches[:limit], strategy=strategy)
