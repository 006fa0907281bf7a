"""API v1 router aggregation.

All v1 endpoints are prefixed with `/api/v1`:
- Documents (`/api/v1/documents/*`)
- Conversations (`/api/v1/conversations/*`)
- Chat (`/api/v1/chat`)
- Health (`/api/v1/health`, `/api/v1/ready`)

The caller's identity is taken from the `X-User-Id` header on every
endpoint except health checks.
"""

from fastapi import APIRouter

from document_chat.api.v1 import chat, conversations, documents, health

router = APIRouter(
    prefix="/api/v1",
    responses={
        401: {"description": "Missing X-User-Id header"},
        404: {"description": "Not found"},
        422: {"description": "Validation error"},
        500: {"description": "Internal server error"},
    },
)

router.include_router(health.router)
router.include_router(documents.router)
router.include_router(conversations.router)
router.include_router(chat.router)
