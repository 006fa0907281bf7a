"""Document endpoints: registration, listing, deletion and processing."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from document_chat.dependencies import (
    get_current_user_id,
    get_document_service,
    get_ingestion_service,
)
from document_chat.models.document import (
    DocumentCreateRequest,
    DocumentListResponse,
    DocumentResponse,
    ProcessDocumentResponse,
)
from document_chat.services.document_service import DocumentService
from document_chat.services.ingestion_service import IngestionService
from document_chat.utils.logging import get_logger

logger = get_logger("api.documents")

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post(
    "",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register document",
    description="Register an uploaded PDF. The document starts in the 'uploading' state.",
)
async def register_document(
    request: DocumentCreateRequest,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    document = await service.register_document(
        owner_id=user_id,
        original_name=request.original_name,
        file_path=request.file_path,
        file_size=request.file_size,
        mime_type=request.mime_type,
    )
    return DocumentResponse.model_validate(document)


@router.get(
    "",
    response_model=DocumentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List documents",
)
async def list_documents(
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
) -> DocumentListResponse:
    """List the caller's documents, newest first."""
    documents = await service.list_documents(user_id)
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(d) for d in documents],
        total=len(documents),
    )


@router.get(
    "/{document_id}",
    response_model=DocumentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get document",
)
async def get_document(
    document_id: str,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    document = await service.get_document(user_id, document_id)
    return DocumentResponse.model_validate(document)


@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete document",
    description="Delete a document together with its stored chunks.",
)
async def delete_document(
    document_id: str,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
) -> None:
    await service.delete_document(user_id, document_id)


@router.post(
    "/{document_id}/process",
    response_model=ProcessDocumentResponse,
    status_code=status.HTTP_200_OK,
    summary="Process document",
    description=(
        "Extract, chunk, embed and index an uploaded document. "
        "On failure the document is marked 'failed' and the error is returned."
    ),
)
async def process_document(
    document_id: str,
    timeout: Optional[float] = Query(None, gt=0, description="Processing time limit in seconds"),
    user_id: str = Depends(get_current_user_id),
    service: IngestionService = Depends(get_ingestion_service),
) -> ProcessDocumentResponse:
    result = await service.process_document(document_id, owner_id=user_id, timeout=timeout)
    return ProcessDocumentResponse(
        success=result.success,
        chunks_processed=result.chunks_processed,
        total_pages=result.total_pages,
    )
