"""PressWire API application.

Builds the FastAPI app: security headers, CORS for the static site, the
error envelope for every failure path, the /api/v1 routers and /health.
Background side effects (emails) are drained on shutdown.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from presswire.api.deps import get_dispatcher
from presswire.api.v1.router import router as v1_router
from presswire.core.config import settings
from presswire.core.errors import APIError, RateLimitedError
from presswire.core.logging_setup import configure_logging
from presswire.core.responses import ErrorDetail, ErrorResponse

logger = structlog.get_logger()

# Sent on every response. The API never serves HTML, so nothing may frame
# or embed it.
_STATIC_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

_RATE_LIMIT_HEADERS = [
    "Retry-After",
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
]


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds browser hardening headers.

    API responses also get Cache-Control: no-store, since they carry
    verification codes and bearer tokens. HSTS is production only (TLS
    terminates at the proxy).
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers.update(_STATIC_SECURITY_HEADERS)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response


def _envelope(
    status_code: int,
    code: str,
    message: str,
    details: list[dict] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def handle_api_error(_request: Request, exc: APIError) -> JSONResponse:
    """Domain and HTTP errors raised by services and dependencies."""
    headers = exc.headers if isinstance(exc, RateLimitedError) else None
    return _envelope(exc.status_code, exc.code, exc.message, exc.details, headers)


def handle_request_validation(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are a 400, not FastAPI's default 422."""
    details = [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    return _envelope(400, "VALIDATION_ERROR", "Request validation failed", details)


def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    """Last resort. The client never sees the exception text."""
    logger.exception("unhandled_exception", exc_info=exc, path=request.url.path)
    return _envelope(500, "INTERNAL_ERROR", "An unexpected error occurred")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    dispatcher = get_dispatcher()
    pending = dispatcher.pending_count
    await dispatcher.drain()
    logger.info("shutdown_complete", drained_side_effects=pending)


def create_app() -> FastAPI:
    """Application factory (tests build a fresh app per case)."""
    configure_logging(settings.log_level)

    app = FastAPI(
        title="PressWire API",
        description="Domain-verified press releases for Irish businesses",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Added last so it wraps everything and answers preflights first
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization", "Stripe-Signature"],
        expose_headers=_RATE_LIMIT_HEADERS,
    )

    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health")
    def health() -> dict:
        return {"status": "healthy", "environment": settings.environment}

    return app


# uvicorn presswire.main:app
app = create_app()
