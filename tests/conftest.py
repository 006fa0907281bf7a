"""Pytest configuration and fixtures."""

import pytest
from qdrant_client import AsyncQdrantClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from document_chat.config import StorageSettings
from document_chat.database.models import Base
from document_chat.services.vector_store import VectorStore

from fakes import KeywordEmbeddingProvider, make_settings

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def settings(tmp_path):
    """Test settings with local storage rooted in a temporary directory."""
    return make_settings(storage=StorageSettings(local_root=str(tmp_path)))


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def qdrant_client():
    """A private in-memory Qdrant per test."""
    client = AsyncQdrantClient(location=":memory:")
    yield client
    await client.close()


@pytest.fixture
def vector_store(settings, qdrant_client):
    return VectorStore(settings, client=qdrant_client)


@pytest.fixture
def embedding_provider():
    return KeywordEmbeddingProvider()
