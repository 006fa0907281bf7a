"""Qdrant-backed storage and similarity search for chunk embeddings."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Sequence

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchAny,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from document_chat.config import Settings, get_settings
from document_chat.models.chunk import TextChunk
from document_chat.models.retrieval import RetrievalMatch
from document_chat.utils.errors import VectorStoreError
from document_chat.utils.logging import get_logger

logger = get_logger("vector_store")

# Deterministic namespace for generating stable point IDs from (document_id, chunk_index)
_POINT_ID_NAMESPACE = uuid.UUID("6b9c7d68-4b93-4c9c-9d83-0b6c68dbb4d9")

_client: Optional[AsyncQdrantClient] = None


def make_point_id(document_id: str, chunk_index: int) -> str:
    """Create a stable UUID point id for a chunk."""
    return str(uuid.uuid5(_POINT_ID_NAMESPACE, f"{document_id}:{chunk_index}"))


def get_qdrant_client(settings: Optional[Settings] = None) -> AsyncQdrantClient:
    """Get or create the process-wide Qdrant client."""
    global _client
    if _client is None:
        settings = settings or get_settings()
        if settings.qdrant.is_in_memory:
            _client = AsyncQdrantClient(location=":memory:")
        else:
            _client = AsyncQdrantClient(
                url=settings.qdrant.url,
                api_key=settings.qdrant.api_key,
                timeout=settings.qdrant.timeout,
            )
        logger.info(f"Qdrant client created: url={settings.qdrant.url}")
    return _client


async def close_qdrant_client() -> None:
    """Close the process-wide Qdrant client."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None
        logger.info("Qdrant client closed")


def _owner_filter(owner_id: str, document_ids: Optional[Sequence[str]] = None) -> Filter:
    must = [FieldCondition(key="user_id", match=MatchValue(value=owner_id))]
    if document_ids is not None:
        must.append(FieldCondition(key="document_id", match=MatchAny(any=list(document_ids))))
    return Filter(must=must)


def _to_match(payload: Dict[str, Any], similarity: Optional[float]) -> RetrievalMatch:
    return RetrievalMatch(
        document_id=payload["document_id"],
        document_name=payload.get("document_name") or "Document",
        chunk_index=payload.get("chunk_index", 0),
        content=payload.get("content", ""),
        page_number=payload.get("page_number"),
        similarity=similarity,
    )


class VectorStore:
    """
    Store chunk embeddings in a single Qdrant collection.

    Every point carries ``user_id`` and ``document_id`` in its payload so
    searches can be scoped to one owner's documents. Distance is cosine, so
    Qdrant scores are cosine similarities (1 - cosine distance).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[AsyncQdrantClient] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client
        self.collection_name = self.settings.qdrant.collection_name
        self._collection_ready = False

    def _get_client(self) -> AsyncQdrantClient:
        if self._client is None:
            self._client = get_qdrant_client(self.settings)
        return self._client

    async def ensure_collection(self) -> None:
        """Ensure the collection exists with the configured vector size."""
        if self._collection_ready:
            return

        client = self._get_client()
        vector_size = self.settings.embedding.embedding_dimension
        try:
            if await client.collection_exists(self.collection_name):
                info = await client.get_collection(self.collection_name)
                current_size = getattr(info.config.params.vectors, "size", None)
                if current_size is not None and int(current_size) != int(vector_size):
                    raise VectorStoreError(
                        "Qdrant collection vector size mismatch",
                        details={
                            "collection": self.collection_name,
                            "expected": vector_size,
                            "actual": int(current_size),
                        },
                    )
            else:
                await client.create_collection(
                    collection_name=self.collection_name,
                    vectors_config=VectorParams(size=vector_size, distance=Distance.COSINE),
                )
                if not self.settings.qdrant.is_in_memory:
                    for field in ("user_id", "document_id"):
                        await client.create_payload_index(
                            collection_name=self.collection_name,
                            field_name=field,
                            field_schema=PayloadSchemaType.KEYWORD,
                        )
                logger.info(
                    f"Qdrant collection created: {self.collection_name} (vector_size={vector_size})"
                )
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(
                "Failed to ensure Qdrant collection",
                details={"collection": self.collection_name, "error": str(e)},
            ) from e

        self._collection_ready = True

    async def upsert_chunk(
        self,
        document_id: str,
        user_id: str,
        document_name: str,
        chunk: TextChunk,
        embedding: List[float],
    ) -> str:
        """Persist one chunk with its embedding. Returns the point id."""
        await self.ensure_collection()

        point_id = make_point_id(document_id, chunk.chunk_index)
        payload: Dict[str, Any] = {
            "document_id": document_id,
            "user_id": user_id,
            "document_name": document_name,
            "chunk_index": chunk.chunk_index,
            "content": chunk.content,
            "start_index": chunk.start_index,
            "end_index": chunk.end_index,
            "page_number": chunk.page_number,
            "token_count": chunk.token_count,
        }
        try:
            await self._get_client().upsert(
                collection_name=self.collection_name,
                points=[PointStruct(id=point_id, vector=embedding, payload=payload)],
                wait=True,
            )
        except Exception as e:
            raise VectorStoreError(
                "Failed to upsert chunk into Qdrant",
                details={"document_id": document_id, "chunk_index": chunk.chunk_index, "error": str(e)},
            ) from e
        return point_id

    async def match(
        self,
        query_embedding: List[float],
        owner_id: str,
        document_ids: Sequence[str],
        threshold: float,
        limit: int,
    ) -> List[RetrievalMatch]:
        """
        Rank the owner's chunks by cosine similarity.

        Args:
            query_embedding: Query vector
            owner_id: Owner whose chunks are searched
            document_ids: Documents eligible for search (the owner's completed ones)
            threshold: Results must score strictly above this
            limit: Maximum number of results

        Returns:
            Matches in descending similarity order
        """
        if not document_ids or limit <= 0:
            return []

        await self.ensure_collection()
        try:
            response = await self._get_client().query_points(
                collection_name=self.collection_name,
                query=query_embedding,
                query_filter=_owner_filter(owner_id, document_ids),
                limit=limit,
                score_threshold=threshold,
                with_payload=True,
            )
        except Exception as e:
            raise VectorStoreError(
                "Qdrant similarity search failed",
                details={"collection": self.collection_name, "error": str(e)},
            ) from e

        matches = [_to_match(p.payload or {}, float(p.score)) for p in response.points if p.score > threshold]
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    async def recent_chunks(self, owner_id: str, limit: int) -> List[RetrievalMatch]:
        """Up to ``limit`` of the owner's chunks, unranked."""
        if limit <= 0:
            return []
        await self.ensure_collection()
        try:
            points, _ = await self._get_client().scroll(
                collection_name=self.collection_name,
                scroll_filter=_owner_filter(owner_id),
                limit=limit,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            raise VectorStoreError(
                "Qdrant scroll failed",
                details={"collection": self.collection_name, "error": str(e)},
            ) from e
        return [_to_match(p.payload or {}, None) for p in points]

    async def count_document_chunks(self, document_id: str) -> int:
        await self.ensure_collection()
        try:
            result = await self._get_client().count(
                collection_name=self.collection_name,
                count_filter=Filter(
                    must=[FieldCondition(key="document_id", match=MatchValue(value=document_id))]
                ),
                exact=True,
            )
        except Exception as e:
            raise VectorStoreError(
                "Qdrant count failed", details={"document_id": document_id, "error": str(e)}
            ) from e
        return result.count

    async def delete_document_chunks(self, document_id: str) -> None:
        """Delete every point belonging to a document."""
        await self.ensure_collection()
        try:
            await self._get_client().delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(
                    filter=Filter(
                        must=[FieldCondition(key="document_id", match=MatchValue(value=document_id))]
                    )
                ),
                wait=True,
            )
            logger.info(f"Deleted chunks for document {document_id}")
        except Exception as e:
            raise VectorStoreError(
                "Failed to delete document chunks",
                details={"document_id": document_id, "error": str(e)},
            ) from e

    async def health_check(self) -> bool:
        """Check whether Qdrant is reachable."""
        try:
            await self._get_client().get_collections()
            return True
        except Exception as e:
            logger.warning(f"Qdrant health check failed: {e}")
            return False
