"""API application factory."""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from macropulse.core.config import settings
from macropulse.core.exceptions import register_exception_handlers
from macropulse.core.logging import get_logger, request_id_var
from macropulse.schemas.common import ErrorResponse

from .routes import ai_prediction, health


logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the store client and AI provider; release them on shutdown."""
    from macropulse.cache.client import close_valkey_client, create_valkey_client
    from macropulse.cache.store import ValkeyStore
    from macropulse.services.ai.generate import GeminiProvider

    client = create_valkey_client(settings)
    app.state.store = ValkeyStore(client)
    app.state.provider = GeminiProvider()

    yield

    try:
        await app.state.provider.close()
        await close_valkey_client(client)
    except Exception as e:
        logger.warning(f"Resource cleanup failed: {e}")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add request ID to all requests for tracing."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        request_id_var.set(request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.monotonic()

        response = await call_next(request)

        duration = time.monotonic() - start_time

        # Path only; query strings stay out of the logs
        path = request.url.path

        logger.info(
            f"{request.method} {path} -> {response.status_code} ({duration:.3f}s)",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": int(duration * 1000),
            },
        )

        return response


def create_api_app() -> FastAPI:
    """Create and configure the API application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="AI market analysis over economic indicators, with a similarity fallback cache",
        root_path=settings.root_path,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        responses={
            400: {"model": ErrorResponse, "description": "Bad Request"},
            422: {"model": ErrorResponse, "description": "Validation Error"},
            429: {"model": ErrorResponse, "description": "Quota Exceeded"},
            500: {"model": ErrorResponse, "description": "Internal Server Error"},
            502: {"model": ErrorResponse, "description": "AI Provider Error"},
        },
    )

    # Add middlewares (order matters - first added is outermost)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS - strict configuration (no wildcards with credentials)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(ai_prediction.router, prefix="/ai-prediction", tags=["AI Prediction"])

    return app
