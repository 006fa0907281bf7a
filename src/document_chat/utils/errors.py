"""Custom exception classes for the Document Chat service."""

from enum import Enum
from typing import Any, Dict, Optional


class FailureKind(str, Enum):
    """Classification of an upstream provider failure."""

    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    PERMANENT = "permanent"


RETRYABLE_KINDS = frozenset(
    {
        FailureKind.RATE_LIMITED,
        FailureKind.OVERLOADED,
        FailureKind.SERVER_ERROR,
        FailureKind.NETWORK,
    }
)

_STATUS_KINDS = {
    429: FailureKind.RATE_LIMITED,
    500: FailureKind.SERVER_ERROR,
    503: FailureKind.OVERLOADED,
}


def classify_status(status_code: int) -> FailureKind:
    """Map an upstream HTTP status code to a failure kind."""
    return _STATUS_KINDS.get(status_code, FailureKind.PERMANENT)


class DocumentChatException(Exception):
    """Base exception for all Document Chat errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "status_code": self.status_code,
                "details": self.details,
            }
        }


class ConfigurationError(DocumentChatException):
    """Missing credentials or inconsistent settings. Never retried."""

    def __init__(
        self,
        message: str = "Service is not configured",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=500,
            code="CONFIGURATION_ERROR",
            details=details,
        )


class AuthenticationError(DocumentChatException):
    """Exception raised when the caller identity is missing."""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=401,
            code="AUTHENTICATION_ERROR",
            details=details,
        )


class ProviderError(DocumentChatException):
    """Exception raised when an external model provider call fails."""

    default_code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        provider: str,
        kind: FailureKind = FailureKind.PERMANENT,
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.provider = provider
        self.kind = kind
        self.upstream_status = upstream_status
        error_details = details or {}
        error_details.update({"provider": provider, "kind": kind.value})
        if upstream_status is not None:
            error_details["upstream_status"] = upstream_status
        super().__init__(
            message=message,
            status_code=502,
            code=self.default_code,
            details=error_details,
        )

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @classmethod
    def from_status(
        cls,
        provider: str,
        status_code: int,
        body: str = "",
    ) -> "ProviderError":
        """Build an error from a non-2xx upstream response."""
        return cls(
            f"{provider} request failed: {status_code} - {body[:500]}",
            provider=provider,
            kind=classify_status(status_code),
            upstream_status=status_code,
        )


class EmbeddingError(ProviderError):
    """Exception raised for embedding generation errors."""

    default_code = "EMBEDDING_ERROR"


class GenerationError(ProviderError):
    """Exception raised when answer generation fails."""

    default_code = "GENERATION_ERROR"


class ParsingError(DocumentChatException):
    """Exception raised for document text extraction errors."""

    def __init__(
        self,
        message: str = "Document parsing failed",
        file_type: Optional[str] = None,
        code: str = "PARSING_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if file_type:
            error_details["file_type"] = file_type
        super().__init__(
            message=message,
            status_code=422,
            code=code,
            details=error_details,
        )


class UnreadableDocumentError(ParsingError):
    """Extraction produced no usable text (image-based or corrupted source)."""

    def __init__(
        self,
        message: str = "No readable text found in PDF. The PDF may be image-based or corrupted.",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            file_type="pdf",
            code="UNREADABLE_DOCUMENT",
            details=details,
        )


class ChunkingError(DocumentChatException):
    """Exception raised for text chunking errors."""

    def __init__(
        self,
        message: str = "Text chunking failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=500,
            code="CHUNKING_ERROR",
            details=details,
        )


class VectorStoreError(DocumentChatException):
    """Exception raised for Qdrant operation errors."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=502,
            code="VECTOR_STORE_ERROR",
            details=details,
        )


class StorageError(DocumentChatException):
    """Exception raised for storage operation errors."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=502,
            code="STORAGE_ERROR",
            details=details,
        )


class DatabaseError(DocumentChatException):
    """Exception raised for relational store errors."""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=500,
            code="DATABASE_ERROR",
            details=details,
        )


class ValidationError(DocumentChatException):
    """Exception raised for validation errors."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if errors:
            error_details["validation_errors"] = errors
        super().__init__(
            message=message,
            status_code=422,
            code="VALIDATION_ERROR",
            details=error_details,
        )


class NotFoundError(DocumentChatException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} not found"
        if resource_id:
            message += f" with id: {resource_id}"
        error_details = details or {}
        error_details["resource"] = resource
        if resource_id:
            error_details["resource_id"] = resource_id
        super().__init__(
            message=message,
            status_code=404,
            code="NOT_FOUND",
            details=error_details,
        )


class InvalidStatusTransitionError(DocumentChatException):
    """Exception raised for an illegal document lifecycle transition."""

    def __init__(
        self,
        current: str,
        target: str,
        document_id: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"current_status": current, "target_status": target}
        if document_id:
            details["document_id"] = document_id
        super().__init__(
            message=f"Cannot move document from '{current}' to '{target}'",
            status_code=409,
            code="INVALID_STATUS_TRANSITION",
            details=details,
        )


class RequestTimeoutError(DocumentChatException):
    """An operation exceeded the caller-supplied timeout."""

    def __init__(
        self,
        message: str = "Request timed out",
        timeout: Optional[float] = None,
        code: str = "REQUEST_TIMEOUT",
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if timeout is not None:
            error_details["timeout_seconds"] = timeout
        super().__init__(
            message=message,
            status_code=504,
            code=code,
            details=error_details,
        )


class IngestionException(DocumentChatException):
    """Exception raised when a document cannot be ingested."""

    def __init__(
        self,
        message: str = "Document ingestion failed",
        status_code: int = 500,
        code: str = "INGESTION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            code=code,
            details=details,
        )


class IngestionTimeoutError(IngestionException):
    """Ingestion exceeded the caller-supplied timeout."""

    def __init__(self, timeout: float, document_id: Optional[str] = None):
        details: Dict[str, Any] = {"timeout_seconds": timeout}
        if document_id:
            details["document_id"] = document_id
        super().__init__(
            message=f"Document processing timed out after {timeout} seconds",
            status_code=504,
            code="INGESTION_TIMEOUT",
            details=details,
        )
