"""PDF text extraction."""

import asyncio
import io
from typing import Optional

from document_chat.models.document import ExtractedDocument
from document_chat.utils.errors import ParsingError
from document_chat.utils.logging import get_logger

logger = get_logger("parser_service")

PDF_MIME_TYPE = "application/pdf"


class ParserService:
    """
    Extract plain text from uploaded documents.

    Only PDF is supported (PyPDF2). Pages whose text cannot be extracted are
    skipped; an image-only PDF therefore yields empty text rather than an
    error, and the caller decides whether that is readable enough.
    """

    async def extract(
        self, file_data: bytes, mime_type: str = PDF_MIME_TYPE, filename: Optional[str] = None
    ) -> ExtractedDocument:
        """
        Extract text and page count.

        Args:
            file_data: Raw file bytes
            mime_type: Declared MIME type of the file
            filename: Optional filename for logging

        Returns:
            ExtractedDocument with text and total_pages

        Raises:
            ParsingError: If the type is unsupported or the PDF cannot be opened
        """
        filename_str = filename or "unknown"
        if mime_type != PDF_MIME_TYPE:
            raise ParsingError(f"Unsupported file type: {mime_type}. Only PDF files are supported.",
                               file_type=mime_type)

        logger.info(f"Parsing document: filename={filename_str}, size={len(file_data)} bytes")
        try:
            return await asyncio.to_thread(self._parse_pdf, file_data, filename_str)
        except ParsingError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error parsing document: {filename_str} - {e}", exc_info=True)
            raise ParsingError(f"Failed to parse PDF: {str(e)}", file_type="pdf") from e

    def _parse_pdf(self, file_data: bytes, filename: str) -> ExtractedDocument:
        import PyPDF2

        pdf_reader = PyPDF2.PdfReader(io.BytesIO(file_data))

        text_parts = []
        for page_num, page in enumerate(pdf_reader.pages, start=1):
            try:
                page_text = page.extract_text() or ""
            except Exception as page_error:
                logger.warning(f"Failed to extract text from page {page_num} in {filename}: {page_error}")
                continue
            if page_text.strip():
                text_parts.append(page_text)

        total_pages = len(pdf_reader.pages)
        text = "\n".join(text_parts)
        logger.info(
            f"PDF parsed: filename={filename}, pages={total_pages}, characters={len(text)}"
        )
        return ExtractedDocument(text=text, total_pages=total_pages)
