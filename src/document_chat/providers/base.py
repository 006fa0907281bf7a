"""Provider interfaces for embedding and text generation."""

from abc import ABC, abstractmethod
from typing import List


class EmbeddingProvider(ABC):
    """Turns a piece of text into a fixed-length vector."""

    name: str = "embedding"

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingError: on transport failure, non-2xx status or a payload
                without an embedding. ``kind`` carries the failure class.
        """

    async def close(self) -> None:
        """Release network resources held by the provider."""


class GenerationProvider(ABC):
    """Produces an answer for a fully assembled prompt."""

    name: str = "generation"

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Generate text for ``prompt``.

        Raises:
            GenerationError: on transport failure, non-2xx status or a payload
                without text. ``kind`` carries the failure class.
        """

    async def close(self) -> None:
        """Release network resources held by the provider."""
