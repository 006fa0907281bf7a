"""Prompt and citation assembly for grounded answers."""

from typing import List, Optional, Sequence

from document_chat.models.chat import Source
from document_chat.models.retrieval import RetrievalMatch
from document_chat.utils.logging import get_logger

logger = get_logger("prompt_builder")

DEFAULT_CONVERSATION_TITLE = "New Conversation"
TITLE_MAX_LENGTH = 50
SOURCE_EXCERPT_LENGTH = 100

ANSWER_PROMPT_TEMPLATE = """Based on the following context from documents, answer the user's question. If the answer cannot be found in the context, say so clearly.

Context:
{context}

User Question: {question}

Answer:"""


class PromptBuilder:
    """Builds the generation prompt and the citation list from retrieved chunks.

    Context is the chunk contents joined by blank lines, in retrieval order.
    Each citation carries the document name, page and a short excerpt.
    """

    def __init__(self, template: str = ANSWER_PROMPT_TEMPLATE):
        self.template = template

    def build_context(self, matches: Sequence[RetrievalMatch]) -> str:
        """Join chunk contents in retrieval order."""
        return "\n\n".join(m.content for m in matches)

    def build_prompt(self, question: str, context: str) -> str:
        """
        Fill the answer template.

        Args:
            question: The user's message
            context: Output of ``build_context``

        Returns:
            str: Prompt ready for the generation service
        """
        prompt = self.template.format(context=context, question=question)
        logger.debug(f"Built prompt: context_chars={len(context)}, prompt_chars={len(prompt)}")
        return prompt

    def build_sources(self, matches: Sequence[RetrievalMatch]) -> List[Source]:
        """One citation per match, excerpted to the first 100 characters."""
        return [
            Source(
                document_id=m.document_id,
                document_title=m.document_name or "Document",
                chunk_content=m.content[:SOURCE_EXCERPT_LENGTH] + "...",
                page_number=m.page_number,
            )
            for m in matches
        ]


def derive_conversation_title(message: Optional[str]) -> str:
    """Title a conversation after its first message, truncated to 50 characters."""
    text = (message or "").strip()
    if not text:
        return DEFAULT_CONVERSATION_TITLE
    if len(text) > TITLE_MAX_LENGTH:
        return text[:TITLE_MAX_LENGTH] + "..."
    return text
