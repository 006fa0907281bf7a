"""Generation result model."""

from pydantic import BaseModel, Field


class GenerationResult(BaseModel):
    """Text produced by a generation provider."""

    text: str = Field(..., description="Generated answer text")
    provider_used: str = Field(..., description="Provider label, suffixed ' (fallback)' on failover")
    used_fallback: bool = Field(default=False)
