"""Chat endpoint."""

from fastapi import APIRouter, Depends, status

from document_chat.dependencies import get_chat_service, get_current_user_id
from document_chat.models.chat import ChatRequest, ChatResponse
from document_chat.services.chat_service import ChatService

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post(
    "",
    response_model=ChatResponse,
    status_code=status.HTTP_200_OK,
    summary="Ask a question",
    description=(
        "Answer a question from the caller's processed documents. "
        "Provider outages produce an apology with an 'error' tag instead of an HTTP error."
    ),
)
async def chat(
    request: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    return await service.chat(request.message, request.conversation_id, user_id)
