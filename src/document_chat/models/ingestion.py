"""Per-chunk and per-run ingestion outcomes."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from document_chat.utils.errors import ConfigurationError


class ChunkOutcome(BaseModel):
    """Result of embedding and storing a single chunk."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    chunk_index: int
    stored: bool
    point_id: Optional[str] = None
    error: Optional[Exception] = Field(default=None, exclude=True)

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    @property
    def is_configuration_error(self) -> bool:
        return isinstance(self.error, ConfigurationError)


class BatchOutcome(BaseModel):
    """Outcomes for every chunk of one ingestion run, in chunk order."""

    outcomes: List[ChunkOutcome] = Field(default_factory=list)

    @property
    def stored_count(self) -> int:
        return sum(1 for o in self.outcomes if o.stored)

    @property
    def failed(self) -> List[ChunkOutcome]:
        return [o for o in self.outcomes if not o.stored]

    @property
    def configuration_error(self) -> Optional[ConfigurationError]:
        """First configuration error among the outcomes, if any."""
        for outcome in self.outcomes:
            if outcome.is_configuration_error:
                return outcome.error
        return None


class ProcessingResult(BaseModel):
    """Summary of a completed ingestion run."""

    success: bool
    chunks_processed: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    chunks_failed: int = Field(default=0, ge=0)
