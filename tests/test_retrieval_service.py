"""Tests for the vector store and similarity retrieval."""

from unittest.mock import AsyncMock

import pytest

from document_chat.models.document import DocumentStatus
from document_chat.models.retrieval import RetrievalMatch, RetrievalStrategy
from document_chat.repositories.document_repository import DocumentRepository
from document_chat.services.retrieval_service import RetrievalService
from document_chat.services.vector_store import VectorStore, make_point_id
from document_chat.utils.errors import VectorStoreError

from fakes import add_document, store_chunks


@pytest.fixture
async def corpus(session, vector_store):
    """Two users' documents with chunks about different keywords."""
    mine = await add_document(session, user_id="user-1", name="Mine", status=DocumentStatus.COMPLETED)
    await store_chunks(vector_store, mine, [
        "alpha alpha alpha alpha",
        "alpha alpha beta",
        "alpha beta beta beta",
        "gamma gamma gamma",
    ])
    pending = await add_document(session, user_id="user-1", name="Pending", status=DocumentStatus.PROCESSING)
    await store_chunks(vector_store, pending, ["alpha alpha alpha alpha alpha"])
    theirs = await add_document(session, user_id="user-2", name="Theirs", status=DocumentStatus.COMPLETED)
    await store_chunks(vector_store, theirs, ["alpha alpha alpha alpha alpha alpha"])
    return {"mine": mine, "pending": pending, "theirs": theirs}


@pytest.fixture
def retrieval_service(session, vector_store, settings):
    return RetrievalService(DocumentRepository(session), vector_store, settings)


class TestVectorStore:
    """Qdrant-backed chunk storage."""

    def test_point_ids_are_stable(self):
        assert make_point_id("doc", 1) == make_point_id("doc", 1)
        assert make_point_id("doc", 1) != make_point_id("doc", 2)

    async def test_upsert_is_idempotent_per_chunk(self, session, vector_store):
        document = await add_document(session, status=DocumentStatus.COMPLETED)
        await store_chunks(vector_store, document, ["alpha one"])
        await store_chunks(vector_store, document, ["alpha one again"])

        assert await vector_store.count_document_chunks(document.id) == 1

    async def test_delete_document_chunks(self, corpus, vector_store):
        await vector_store.delete_document_chunks(corpus["mine"].id)

        assert await vector_store.count_document_chunks(corpus["mine"].id) == 0
        assert await vector_store.count_document_chunks(corpus["theirs"].id) == 1

    async def test_match_with_no_documents_returns_nothing(self, vector_store):
        assert await vector_store.match([1.0] * 8, owner_id="user-1", document_ids=[], threshold=0.0, limit=5) == []

    async def test_recent_chunks_are_owner_scoped(self, corpus, vector_store):
        matches = await vector_store.recent_chunks("user-2", limit=10)
        assert [m.document_name for m in matches] == ["Theirs"]
        assert matches[0].similarity is None

    async def test_zero_limit_returns_nothing(self, corpus, vector_store):
        ids = [corpus["mine"].id]

        assert await vector_store.match([1.0] * 8, owner_id="user-1", document_ids=ids, threshold=0.0, limit=0) == []
        assert await vector_store.recent_chunks("user-1", limit=0) == []

    async def test_collection_dimension_mismatch(self, settings, qdrant_client):
        await VectorStore(settings, client=qdrant_client).ensure_collection()
        settings.embedding.embedding_dimension = 16

        with pytest.raises(VectorStoreError):
            await VectorStore(settings, client=qdrant_client).ensure_collection()

    async def test_health_check(self, vector_store):
        assert await vector_store.health_check() is True


class TestRetrieval:
    """Similarity search with fallback."""

    async def test_results_sorted_above_threshold_and_owner_scoped(self, corpus, retrieval_service, embedding_provider):
        query = await embedding_provider.embed("alpha?")

        result = await retrieval_service.retrieve(query, owner_id="user-1")

        assert result.strategy == RetrievalStrategy.SIMILARITY
        similarities = [m.similarity for m in result.matches]
        assert similarities == sorted(similarities, reverse=True)
        assert all(s > 0.5 for s in similarities)
        assert {m.document_id for m in result.matches} == {corpus["mine"].id}
        assert result.matches[0].content == "alpha alpha alpha alpha"
        assert "gamma gamma gamma" not in [m.content for m in result.matches]

    async def test_limit_is_respected(self, corpus, retrieval_service, embedding_provider):
        query = await embedding_provider.embed("alpha beta")

        result = await retrieval_service.retrieve(query, owner_id="user-1", threshold=0.0, limit=2)

        assert len(result) == 2

    async def test_zero_limit_is_not_replaced_by_default(self, corpus, retrieval_service, embedding_provider):
        query = await embedding_provider.embed("alpha")

        result = await retrieval_service.retrieve(query, owner_id="user-1", threshold=0.0, limit=0)

        assert result.is_empty

    async def test_zero_limit_reaches_search_and_fallback(self, session, settings, embedding_provider):
        vector_store = AsyncMock(spec=VectorStore)
        vector_store.match.side_effect = VectorStoreError("search down")
        vector_store.recent_chunks.return_value = [
            RetrievalMatch(document_id="d1", document_name="Doc", chunk_index=0, content="x"),
        ]
        service = RetrievalService(DocumentRepository(session), vector_store, settings)

        result = await service.retrieve(await embedding_provider.embed("alpha"), owner_id="user-1", limit=0)

        assert vector_store.match.await_args.kwargs["limit"] == 0
        vector_store.recent_chunks.assert_awaited_once_with("user-1", 0)
        assert result.matches == []

    async def test_threshold_is_exclusive(self, corpus, retrieval_service, embedding_provider):
        query = await embedding_provider.embed("alpha")
        top = (await retrieval_service.retrieve(query, owner_id="user-1")).matches[0]

        result = await retrieval_service.retrieve(query, owner_id="user-1", threshold=top.similarity)

        assert all(m.similarity > top.similarity for m in result.matches)

    async def test_user_without_documents_gets_empty_result(self, corpus, retrieval_service, embedding_provider):
        query = await embedding_provider.embed("alpha")

        result = await retrieval_service.retrieve(query, owner_id="user-3")

        assert result.is_empty
        assert result.strategy == RetrievalStrategy.NONE

    async def test_search_failure_uses_fallback(self, session, settings, embedding_provider):
        vector_store = AsyncMock(spec=VectorStore)
        vector_store.match.side_effect = VectorStoreError("search down")
        vector_store.recent_chunks.return_value = [
            RetrievalMatch(document_id="d1", document_name="Doc", chunk_index=0, content="x"),
        ]
        service = RetrievalService(DocumentRepository(session), vector_store, settings)

        result = await service.retrieve(await embedding_provider.embed("alpha"), owner_id="user-1")

        assert result.strategy == RetrievalStrategy.FALLBACK
        assert [m.document_id for m in result.matches] == ["d1"]
        vector_store.recent_chunks.assert_awaited_once_with("user-1", settings.retrieval.limit)

    async def test_empty_search_does_not_use_fallback(self, session, settings, embedding_provider):
        vector_store = AsyncMock(spec=VectorStore)
        vector_store.match.return_value = []
        service = RetrievalService(DocumentRepository(session), vector_store, settings)

        result = await service.retrieve(await embedding_provider.embed("alpha"), owner_id="user-1")

        assert result.is_empty
        vector_store.recent_chunks.assert_not_awaited()

    async def test_fallback_failure_yields_empty_result(self, session, settings, embedding_provider):
        vector_store = AsyncMock(spec=VectorStore)
        vector_store.match.side_effect = VectorStoreError("search down")
        vector_store.recent_chunks.side_effect = VectorStoreError("scroll down")
        service = RetrievalService(DocumentRepository(session), vector_store, settings)

        result = await service.retrieve(await embedding_provider.embed("alpha"), owner_id="user-1")

        assert result.is_empty
        assert result.strategy == RetrievalStrategy.NONE
