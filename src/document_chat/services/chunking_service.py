"""Text chunking service for RAG ingestion."""

import math
import re
from typing import List, Optional, Tuple

from document_chat.config import Settings, get_settings
from document_chat.models.chunk import TextChunk
from document_chat.utils.errors import ChunkingError
from document_chat.utils.logging import get_logger

logger = get_logger("chunking_service")

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")

Span = Tuple[int, int]


def normalize_text(text: str) -> str:
    """Collapse whitespace runs (blank lines included) to single spaces and trim."""
    return _WHITESPACE.sub(" ", text or "").strip()


def count_tokens(text: str) -> int:
    """Approximate token count as the number of whitespace-delimited words."""
    return len(text.split())


def estimate_page_number(start_index: int, text_length: int, total_pages: int) -> int:
    """
    Estimate the source page of a chunk from its position in the text.

    Assumes text is spread evenly across pages: ``ceil(start / length * pages)``,
    clamped to ``[1, total_pages]``.
    """
    if total_pages <= 1 or text_length <= 0:
        return 1
    page = math.ceil(start_index / text_length * total_pages)
    return min(max(page, 1), total_pages)


class ChunkingService:
    """
    Split extracted document text into overlapping, sentence-aligned chunks.

    Sentences are packed greedily up to ``max_size`` characters. When the next
    sentence would overflow a non-empty chunk, the chunk is closed and the next
    one starts with the last ``overlap`` characters of the closed chunk. A
    sentence longer than ``max_size`` is kept whole in its own chunk. Chunks
    shorter than ``min_chunk_length`` are dropped afterwards.

    Every chunk's ``content`` is exactly ``normalized[start_index:end_index]``.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def chunk_text(
        self,
        text: str,
        max_size: Optional[int] = None,
        overlap: Optional[int] = None,
        min_chunk_length: Optional[int] = None,
    ) -> List[TextChunk]:
        """
        Chunk text into an ordered list of TextChunk.

        Args:
            text: Raw extracted text
            max_size: Maximum characters per chunk (defaults to CHUNK_SIZE)
            overlap: Characters carried over between chunks (defaults to CHUNK_OVERLAP)
            min_chunk_length: Shorter chunks are discarded (defaults to MIN_CHUNK_LENGTH)

        Returns:
            Chunks with contiguous ``chunk_index`` starting at 0

        Raises:
            ChunkingError: If the size parameters are inconsistent
        """
        max_size = max_size if max_size is not None else self.settings.chunking.chunk_size
        overlap = overlap if overlap is not None else self.settings.chunking.chunk_overlap
        if min_chunk_length is None:
            min_chunk_length = self.settings.chunking.min_chunk_length

        if max_size <= 0:
            raise ChunkingError("max_size must be > 0", details={"max_size": max_size})
        if overlap < 0:
            raise ChunkingError("overlap must be >= 0", details={"overlap": overlap})
        if overlap >= max_size:
            raise ChunkingError(
                "overlap must be less than max_size",
                details={"overlap": overlap, "max_size": max_size},
            )

        normalized = normalize_text(text)
        if not normalized:
            return []

        if len(normalized) <= max_size:
            spans = [(0, len(normalized))]
        else:
            spans = self._pack_sentences(normalized, max_size, overlap)

        chunks: List[TextChunk] = []
        for start, end in spans:
            content = normalized[start:end]
            if len(content) < min_chunk_length:
                continue
            chunks.append(
                TextChunk(
                    chunk_index=len(chunks),
                    content=content,
                    start_index=start,
                    end_index=end,
                    token_count=count_tokens(content),
                )
            )

        logger.info(
            f"Chunked text: length={len(normalized)}, chunks={len(chunks)}, "
            f"dropped={len(spans) - len(chunks)}, max_size={max_size}, overlap={overlap}"
        )
        return chunks

    def assign_page_numbers(
        self, chunks: List[TextChunk], text_length: int, total_pages: int
    ) -> List[TextChunk]:
        """Return copies of ``chunks`` with estimated page numbers."""
        return [
            chunk.model_copy(
                update={"page_number": estimate_page_number(chunk.start_index, text_length, total_pages)}
            )
            for chunk in chunks
        ]

    def _split_sentences(self, text: str) -> List[Span]:
        # sentence spans over normalized text; separators are single spaces
        spans: List[Span] = []
        pos = 0
        for match in _SENTENCE_BOUNDARY.finditer(text):
            if match.start() > pos:
                spans.append((pos, match.start()))
            pos = match.end()
        if pos < len(text):
            spans.append((pos, len(text)))
        return spans

    def _pack_sentences(self, text: str, max_size: int, overlap: int) -> List[Span]:
        spans: List[Span] = []
        chunk_start: Optional[int] = None
        chunk_end = 0

        for sent_start, sent_end in self._split_sentences(text):
            if chunk_start is None:
                chunk_start, chunk_end = sent_start, sent_end
                continue

            # consecutive sentences are separated by exactly one space, so the
            # joined chunk is the contiguous slice [chunk_start, sent_end)
            if sent_end - chunk_start > max_size:
                spans.append((chunk_start, chunk_end))
                chunk_start = max(chunk_start, chunk_end - overlap) if overlap else sent_start
            chunk_end = sent_end

        if chunk_start is not None:
            spans.append((chunk_start, chunk_end))
        return spans
