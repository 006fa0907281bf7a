"""Chunk models for document ingestion."""

from typing import Optional

from pydantic import BaseModel, Field


class TextChunk(BaseModel):
    """A chunk of text produced by the chunking service."""

    chunk_index: int = Field(..., ge=0, description="0-based index of this chunk within the document")
    content: str = Field(..., description="Chunk text, equal to normalized[start_index:end_index]")
    start_index: int = Field(..., ge=0, description="Start offset in the normalized text")
    end_index: int = Field(..., ge=0, description="End offset (exclusive) in the normalized text")
    token_count: int = Field(..., ge=0, description="Whitespace-delimited word count")
    page_number: Optional[int] = Field(
        default=None, description="Estimated source page, set once the page count is known"
    )

    @property
    def length(self) -> int:
        return len(self.content)
