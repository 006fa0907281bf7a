"""Pydantic models for chat and conversation endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Source(BaseModel):
    """A document excerpt cited by an answer."""

    model_config = ConfigDict(populate_by_name=True)

    document_id: Optional[str] = Field(None, alias="documentId")
    document_title: str = Field(..., alias="documentTitle")
    chunk_content: str = Field(..., alias="chunkContent", description="First 100 characters of the chunk")
    page_number: Optional[int] = Field(None, alias="pageNumber")


class ChatRequest(BaseModel):
    """Request model for a chat turn."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, description="User question")
    conversation_id: str = Field(..., alias="conversationId")


class ChatResponse(BaseModel):
    """Response envelope for a chat turn."""

    model_config = ConfigDict(populate_by_name=True)

    response: str
    sources: List[Source] = Field(default_factory=list)
    provider: Optional[str] = Field(None, description="Provider that produced the answer")
    error: Optional[str] = Field(None, description="Machine-readable error tag on failure")


class ConversationCreateRequest(BaseModel):
    """Request model for starting a conversation."""

    title: Optional[str] = Field(None, max_length=255)


class MessageResponse(BaseModel):
    """Response model for a conversation message."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    conversation_id: str = Field(..., alias="conversationId")
    role: str = Field(..., description="Message role: user or assistant")
    content: str
    sources: Optional[List[Source]] = None
    created_at: datetime = Field(..., alias="createdAt")


class ConversationResponse(BaseModel):
    """Response model for a conversation."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    user_id: str = Field(..., alias="userId")
    title: str
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class ConversationListResponse(BaseModel):
    """Response model for listing conversations."""

    conversations: List[ConversationResponse]
    total: int


class MessageListResponse(BaseModel):
    """Response model for listing a conversation's messages."""

    messages: List[MessageResponse]
    total: int
