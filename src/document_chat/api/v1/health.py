"""Health check endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from document_chat.config import get_settings
from document_chat.database.connection import check_connection
from document_chat.services.vector_store import VectorStore
from document_chat.utils.logging import get_logger

logger = get_logger("health")

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """
    Health check endpoint.

    Returns basic service health status. This endpoint does not check
    external dependencies and will always return healthy if the service is running.
    """
    settings = get_settings()
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.environment.value,
    }


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check():
    """
    Readiness check endpoint.

    Checks:
    - Database connectivity
    - Qdrant connectivity
    - Embedding and generation provider credentials

    Returns 503 if the database or Qdrant is unavailable. Missing provider
    credentials are reported but do not block readiness.
    """
    settings = get_settings()
    logger.debug("Readiness check requested")

    checks = {
        "database": await check_connection(),
        "qdrant": await VectorStore(settings).health_check(),
        "embeddings": settings.is_embedding_configured,
        "generation": settings.is_generation_configured,
    }

    body = {
        "app_name": settings.app_name,
        "environment": settings.environment.value,
        "checks": checks,
    }

    if not (checks["database"] and checks["qdrant"]):
        logger.warning(f"Readiness check failed (critical): {checks}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", **body},
        )

    if not all(checks.values()):
        logger.warning(f"Readiness check partial (non-critical): {checks}")

    return {"status": "ready", **body}
