"""Conversation endpoints."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, status

from document_chat.dependencies import get_conversation_service, get_current_user_id
from document_chat.models.chat import (
    ConversationCreateRequest,
    ConversationListResponse,
    ConversationResponse,
    MessageListResponse,
    MessageResponse,
)
from document_chat.services.conversation_service import ConversationService

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.post(
    "",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create conversation",
    description="Start a conversation. The title defaults to 'New Conversation' and is replaced by the first question.",
)
async def create_conversation(
    request: Optional[ConversationCreateRequest] = Body(None),
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    title = request.title if request else None
    conversation = await service.create_conversation(user_id, title=title)
    return ConversationResponse.model_validate(conversation)


@router.get(
    "",
    response_model=ConversationListResponse,
    status_code=status.HTTP_200_OK,
    summary="List conversations",
    description="List the caller's conversations, most recently active first.",
)
async def list_conversations(
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationListResponse:
    conversations = await service.list_conversations(user_id)
    return ConversationListResponse(
        conversations=[ConversationResponse.model_validate(c) for c in conversations],
        total=len(conversations),
    )


@router.get(
    "/{conversation_id}/messages",
    response_model=MessageListResponse,
    status_code=status.HTTP_200_OK,
    summary="List messages",
)
async def list_messages(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> MessageListResponse:
    """Messages of a conversation, oldest first."""
    messages = await service.get_messages(user_id, conversation_id)
    return MessageListResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        total=len(messages),
    )


@router.delete(
    "/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete conversation",
)
async def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> None:
    await service.delete_conversation(user_id, conversation_id)
