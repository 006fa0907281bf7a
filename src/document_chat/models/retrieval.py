"""Retrieval result models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RetrievalStrategy(str, Enum):
    """Which path produced a retrieval result."""

    SIMILARITY = "similarity"
    FALLBACK = "fallback"
    NONE = "none"


class RetrievalMatch(BaseModel):
    """A stored chunk returned for a query."""

    document_id: str
    document_name: str
    chunk_index: int
    content: str
    page_number: Optional[int] = None
    similarity: Optional[float] = Field(
        default=None, description="Cosine similarity; None for unranked fallback results"
    )


class RetrievalResult(BaseModel):
    """Ordered matches plus the strategy that produced them."""

    matches: List[RetrievalMatch] = Field(default_factory=list)
    strategy: RetrievalStrategy = RetrievalStrategy.NONE

    @property
    def is_empty(self) -> bool:
        return not self.matches

    def __len__(self) -> int:
        return len(self.matches)
