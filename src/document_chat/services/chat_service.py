"""Chat orchestration: embed the question, retrieve context, generate, record."""

import asyncio
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from document_chat.config import Settings, get_settings
from document_chat.models.chat import ChatResponse, Source
from document_chat.repositories.conversation_repository import (
    ConversationRepository,
    MessageRepository,
)
from document_chat.repositories.document_repository import DocumentRepository
from document_chat.services.embedding_service import EmbeddingService
from document_chat.services.generation_service import GenerationService
from document_chat.services.prompt_builder import (
    DEFAULT_CONVERSATION_TITLE,
    PromptBuilder,
    derive_conversation_title,
)
from document_chat.services.retrieval_service import RetrievalService
from document_chat.services.vector_store import VectorStore
from document_chat.utils.errors import (
    DatabaseError,
    FailureKind,
    NotFoundError,
    ProviderError,
    RequestTimeoutError,
)
from document_chat.utils.logging import get_logger

logger = get_logger("chat_service")

NO_RELEVANT_DOCUMENTS_MESSAGE = (
    "I couldn't find relevant documents for your query. "
    "Please check if the documents are correctly processed."
)
NO_DOCUMENT_CONTENT_MESSAGE = (
    "I don't have any document content to reference. "
    "Please upload some documents first, and make sure they are properly processed."
)
AI_SERVICE_UNAVAILABLE = "AI_SERVICE_UNAVAILABLE"

_APOLOGY_PREFIX = "I'm experiencing technical difficulties right now. "
_APOLOGY_BY_KIND = {
    FailureKind.OVERLOADED: "The AI service is currently overloaded. Please try again in a few moments.",
    FailureKind.RATE_LIMITED: "Too many requests are being processed. Please wait a moment and try again.",
}
_APOLOGY_GENERIC = "Please try again later or contact support if the issue persists."


def apology_message(kind: Optional[FailureKind]) -> str:
    """User-facing message for a provider failure, by failure class."""
    return _APOLOGY_PREFIX + _APOLOGY_BY_KIND.get(kind, _APOLOGY_GENERIC)


class ChatService:
    """
    Answer a question from the owner's documents and keep the conversation log.

    The user message is recorded first. An assistant message is recorded on
    every outcome that returns a response: a grounded answer, the
    no-relevant-documents reply, or an apology when providers fail. Only
    configuration errors and missing conversations propagate.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        embedding_service: Optional[EmbeddingService] = None,
        generation_service: Optional[GenerationService] = None,
        vector_store: Optional[VectorStore] = None,
        retrieval_service: Optional[RetrievalService] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session = session
        self.conversations = ConversationRepository(session)
        self.messages = MessageRepository(session)
        self.embedding_service = embedding_service or EmbeddingService(self.settings)
        self.generation_service = generation_service or GenerationService(self.settings)
        self.retrieval_service = retrieval_service or RetrievalService(
            DocumentRepository(session),
            vector_store or VectorStore(self.settings),
            self.settings,
        )
        self.prompt_builder = prompt_builder or PromptBuilder()

    async def chat(
        self,
        message: str,
        conversation_id: str,
        owner_id: str,
        timeout: Optional[float] = None,
    ) -> ChatResponse:
        """
        Run one chat turn.

        Args:
            message: The user's question
            conversation_id: Conversation the turn belongs to
            owner_id: User making the request
            timeout: Optional limit in seconds for the whole turn

        Returns:
            ChatResponse with the answer, its sources, and the provider used

        Raises:
            NotFoundError: Conversation does not exist or belongs to someone else
            ConfigurationError: Embedding or generation is not configured
            RequestTimeoutError: ``timeout`` elapsed
        """
        if timeout is None:
            return await self._chat(message, conversation_id, owner_id)
        try:
            return await asyncio.wait_for(
                self._chat(message, conversation_id, owner_id), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"Chat request timed out after {timeout} seconds",
                timeout=timeout,
                code="CHAT_TIMEOUT",
            ) from e

    async def _chat(self, message: str, conversation_id: str, owner_id: str) -> ChatResponse:
        conversation = await self.conversations.get_owned(conversation_id, owner_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)

        is_first_message = await self.messages.count_for_conversation(conversation.id) == 0
        await self.messages.add(conversation.id, owner_id, "user", message)
        if is_first_message and conversation.title == DEFAULT_CONVERSATION_TITLE:
            await self.conversations.update(conversation, title=derive_conversation_title(message))
        await self.session.commit()
        logger.info(f"Chat turn started: conversation_id={conversation.id}, user={owner_id}")

        try:
            query_embedding = await self.embedding_service.embed(message)
        except ProviderError as e:
            logger.error(f"Query embedding failed: {e.message}")
            return await self._apologize(conversation.id, owner_id, e)

        retrieval = await self.retrieval_service.retrieve(query_embedding, owner_id)
        if retrieval.is_empty:
            logger.warning(f"No relevant document chunks found for user {owner_id}")
            return await self._reply(conversation.id, owner_id, NO_RELEVANT_DOCUMENTS_MESSAGE)

        context = self.prompt_builder.build_context(retrieval.matches)
        if not context.strip():
            return await self._reply(conversation.id, owner_id, NO_DOCUMENT_CONTENT_MESSAGE)
        logger.info(
            f"Built context from {len(retrieval)} chunks ({retrieval.strategy.value}), "
            f"total chars: {len(context)}"
        )

        prompt = self.prompt_builder.build_prompt(message, context)
        try:
            result = await self.generation_service.generate(prompt)
        except ProviderError as e:
            logger.error(f"All AI providers failed: {e.message}")
            return await self._apologize(conversation.id, owner_id, e)

        sources = self.prompt_builder.build_sources(retrieval.matches)
        logger.info(f"Generated response using {result.provider_used}")
        return await self._reply(
            conversation.id, owner_id, result.text, sources=sources, provider=result.provider_used
        )

    async def _apologize(self, conversation_id: str, owner_id: str, error: ProviderError) -> ChatResponse:
        return await self._reply(
            conversation_id, owner_id, apology_message(error.kind), error=AI_SERVICE_UNAVAILABLE
        )

    async def _reply(
        self,
        conversation_id: str,
        owner_id: str,
        text: str,
        sources: Optional[List[Source]] = None,
        provider: Optional[str] = None,
        error: Optional[str] = None,
    ) -> ChatResponse:
        """Record the assistant message and build the response envelope."""
        sources = sources or []
        try:
            await self.messages.add(
                conversation_id,
                owner_id,
                "assistant",
                text,
                sources=[s.model_dump() for s in sources],
            )
            await self.conversations.touch(conversation_id)
            await self.session.commit()
        except (DatabaseError, SQLAlchemyError) as e:
            # The response is still returned; the user message is already committed
            await self.session.rollback()
            logger.error(f"Error saving assistant message: {e}")

        return ChatResponse(response=text, sources=sources, provider=provider, error=error)
