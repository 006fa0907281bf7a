"""FastAPI application entry point.

This module creates and configures the FastAPI application instance with:
- Application metadata and OpenAPI documentation
- Middleware (CORS, request context, access log)
- Exception handlers
- API routers (v1)
- Health check endpoints (/health, /ready)
- Startup/shutdown lifecycle management (database, Qdrant)
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from document_chat.api.v1 import health
from document_chat.api.v1.router import router as v1_router
from document_chat.config import get_settings
from document_chat.database.session import close_db, init_db
from document_chat.middleware import setup_middleware
from document_chat.services.vector_store import VectorStore, close_qdrant_client
from document_chat.utils.errors import DocumentChatException
from document_chat.utils.logging import get_logger, log_error, setup_logging

# Set up logging first
setup_logging()
logger = get_logger("main")

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Handles startup and shutdown of:
    - Database engine and tables
    - Qdrant client and collection
    """
    logger.info("Starting Document Chat service...")
    try:
        await init_db()

        try:
            await VectorStore(settings).ensure_collection()
            logger.info("Qdrant collection ready")
        except DocumentChatException as e:
            logger.error(f"Failed to prepare Qdrant collection: {e.message}", exc_info=True)
            if settings.is_production:
                raise
            logger.warning(
                "Qdrant is unavailable in development mode. "
                "Service will continue but ingestion and chat will fail until it is reachable. "
                f"Check that Qdrant is running and accessible at {settings.qdrant.url}"
            )

        logger.info("Document Chat service started successfully")
        yield

    except Exception as e:
        logger.error(f"Failed to start Document Chat service: {e}", exc_info=True)
        raise
    finally:
        logger.info("Shutting down Document Chat service...")
        await close_qdrant_client()
        await close_db()
        logger.info("Document Chat service shut down")


app = FastAPI(
    title="Document Chat Service",
    description="Chat with uploaded PDF documents using retrieval-augmented generation",
    version="0.1.0",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)

setup_middleware(app, settings)


@app.exception_handler(DocumentChatException)
async def document_chat_exception_handler(request: Request, exc: DocumentChatException):
    """Handle DocumentChatException."""
    log_error(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    log_error(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "code": "HTTP_ERROR",
                "status_code": exc.status_code,
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    log_error(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation error",
                "code": "VALIDATION_ERROR",
                "status_code": 422,
                "details": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
            }
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    log_error(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "Internal server error",
                "code": "INTERNAL_ERROR",
                "status_code": 500,
            }
        },
    )


app.include_router(v1_router)


# Root-level health checks for container orchestration; also served under /api/v1
@app.get("/health", tags=["health"], include_in_schema=False)
async def root_health_check():
    return await health.health_check()


@app.get("/ready", tags=["health"], include_in_schema=False)
async def root_readiness_check():
    return await health.readiness_check()


@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "service": "document-chat",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment.value,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "document_chat.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload and settings.is_development,
        log_level=settings.log_level.lower(),
    )
