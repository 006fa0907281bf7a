"""Document lifecycle and API models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatus(str, Enum):
    """Processing status of an uploaded document."""

    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETED, DocumentStatus.FAILED)

    def can_transition_to(self, target: "DocumentStatus") -> bool:
        """Check whether moving from this status to ``target`` is allowed."""
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    DocumentStatus.UPLOADING: frozenset({DocumentStatus.PROCESSING, DocumentStatus.FAILED}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.COMPLETED, DocumentStatus.FAILED}),
    DocumentStatus.COMPLETED: frozenset(),
    DocumentStatus.FAILED: frozenset(),
}


class ExtractedDocument(BaseModel):
    """Plain text extracted from a source file."""

    text: str = Field(..., description="Extracted text content")
    total_pages: int = Field(..., ge=0, description="Number of pages in the source document")


class DocumentCreateRequest(BaseModel):
    """Request model for registering an uploaded document."""

    model_config = ConfigDict(populate_by_name=True)

    original_name: str = Field(..., alias="originalName", description="Original filename, e.g. report.pdf")
    file_path: str = Field(..., alias="filePath", description="Storage locator of the uploaded bytes")
    file_size: int = Field(..., ge=0, alias="fileSize", description="File size in bytes")
    mime_type: str = Field(default="application/pdf", alias="mimeType")


class DocumentResponse(BaseModel):
    """Response model for a document."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    user_id: str = Field(..., alias="userId")
    name: str
    original_name: str = Field(..., alias="originalName")
    file_path: str = Field(..., alias="filePath")
    file_size: int = Field(..., alias="fileSize")
    mime_type: str = Field(..., alias="mimeType")
    status: DocumentStatus
    total_pages: Optional[int] = Field(None, alias="totalPages")
    total_chunks: int = Field(0, alias="totalChunks")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class DocumentListResponse(BaseModel):
    """Response model for listing documents."""

    documents: List[DocumentResponse]
    total: int


class ProcessDocumentResponse(BaseModel):
    """Response model for a processing run."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    chunks_processed: int = Field(..., alias="chunksProcessed")
    total_pages: int = Field(..., alias="totalPages")
