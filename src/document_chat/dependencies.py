"""FastAPI dependencies: caller identity, session, and per-request services."""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from document_chat.config import Settings, get_settings
from document_chat.database.session import get_session
from document_chat.services.chat_service import ChatService
from document_chat.services.conversation_service import ConversationService
from document_chat.services.document_service import DocumentService
from document_chat.services.embedding_service import EmbeddingService
from document_chat.services.generation_service import GenerationService
from document_chat.services.ingestion_service import IngestionService
from document_chat.services.storage_service import StorageService
from document_chat.services.vector_store import VectorStore
from document_chat.utils.errors import AuthenticationError


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    Resolve the caller's identity.

    Authentication happens upstream; this service trusts the ``X-User-Id``
    header set by the gateway.
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("X-User-Id header is required")
    return x_user_id.strip()


def get_app_settings() -> Settings:
    return get_settings()


def get_vector_store(settings: Settings = Depends(get_app_settings)) -> VectorStore:
    return VectorStore(settings)


async def get_embedding_service(
    settings: Settings = Depends(get_app_settings),
) -> AsyncGenerator[EmbeddingService, None]:
    embedding_service = EmbeddingService(settings)
    try:
        yield embedding_service
    finally:
        await embedding_service.close()


async def get_generation_service(
    settings: Settings = Depends(get_app_settings),
) -> AsyncGenerator[GenerationService, None]:
    generation_service = GenerationService(settings)
    try:
        yield generation_service
    finally:
        await generation_service.close()


async def get_storage_service(
    settings: Settings = Depends(get_app_settings),
) -> AsyncGenerator[StorageService, None]:
    storage_service = StorageService(settings)
    try:
        yield storage_service
    finally:
        await storage_service.close()


def get_document_service(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    vector_store: VectorStore = Depends(get_vector_store),
) -> DocumentService:
    return DocumentService(session, settings=settings, vector_store=vector_store)


def get_conversation_service(session: AsyncSession = Depends(get_session)) -> ConversationService:
    return ConversationService(session)


def get_ingestion_service(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    storage_service: StorageService = Depends(get_storage_service),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
    vector_store: VectorStore = Depends(get_vector_store),
) -> IngestionService:
    return IngestionService(
        session,
        settings=settings,
        storage_service=storage_service,
        embedding_service=embedding_service,
        vector_store=vector_store,
    )


def get_chat_service(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
    generation_service: GenerationService = Depends(get_generation_service),
    vector_store: VectorStore = Depends(get_vector_store),
) -> ChatService:
    return ChatService(
        session,
        settings=settings,
        embedding_service=embedding_service,
        generation_service=generation_service,
        vector_store=vector_store,
    )
