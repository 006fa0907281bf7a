"""HTTP middleware: request context, access logging and CORS."""

import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from document_chat.config import Settings
from document_chat.utils.logging import bind_request_context, get_logger, log_request

logger = get_logger("middleware")

REQUEST_ID_HEADER = "X-Request-ID"
USER_ID_HEADER = "X-User-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Bind the request id and caller id to the logging context.

    The request id is taken from ``X-Request-ID`` when the gateway sends one
    and generated otherwise; it is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        bind_request_context(request_id, request.headers.get(USER_ID_HEADER))

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One access log line per request, plus an ``X-Process-Time`` header."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        # Health checks hit these every few seconds
        if request.url.path not in ("/health", "/ready"):
            log_request(
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=duration_ms,
                client_ip=request.client.host if request.client else None,
            )
        response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"
        return response


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Register middleware on the app.

    Starlette runs the last-added middleware first, so CORS (added last)
    answers preflight requests before anything else, and the request context
    is bound before the access log line is written.
    """
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "X-Process-Time"],
        max_age=3600,
    )
    logger.info(f"Middleware configured: CORS origins={settings.cors_origins}")
