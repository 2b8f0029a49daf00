"""Custom exceptions and centralized exception handlers."""

from __future__ import annotations

from typing import Any, Iterable

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception with structured error response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.status_code = status_code or self.status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to RFC 7807 problem+json style response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "status": self.status_code,
            **({"details": self.details} if self.details else {}),
        }


class BadRequestError(AppException):
    """Bad request."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "BAD_REQUEST"
    message = "Bad request"


class InvalidSnapshotError(AppException):
    """Indicator snapshot is malformed; never reaches the store or provider."""

    status_code = 422
    error_code = "INVALID_SNAPSHOT"
    message = "Indicator snapshot is invalid"


class MissingIndicatorError(InvalidSnapshotError):
    """Snapshot lacks indicator ids required by the rounding table."""

    error_code = "MISSING_INDICATOR"

    def __init__(self, missing: Iterable[str]):
        self.missing = sorted(missing)
        super().__init__(
            message=f"Snapshot is missing indicators: {', '.join(self.missing)}",
            details={"missing": self.missing},
        )


class ProviderQuotaExceededError(AppException):
    """AI provider quota or rate limit exhausted."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error_code = "QUOTA_EXCEEDED"
    message = "AI provider quota exceeded. Please try again later."

    def __init__(self, message: str | None = None, **kwargs: Any):
        details = kwargs.pop("details", None) or {}
        details.setdefault("isQuotaError", True)
        super().__init__(message, details=details, **kwargs)


class ProviderError(AppException):
    """AI provider failed for a reason other than quota."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "PROVIDER_ERROR"
    message = "AI provider request failed"


class StoreUnavailableError(AppException):
    """Durable store could not be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "STORE_UNAVAILABLE"
    message = "Cache store temporarily unavailable"


class CorruptCacheEntryError(AppException):
    """Stored analysis payload does not match the AnalysisRecord schema."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CORRUPT_CACHE_ENTRY"
    message = "Cached analysis could not be decoded"


def register_exception_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={"X-Request-ID": getattr(request.state, "request_id", "unknown")},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        import logging

        logger = logging.getLogger("macropulse.error")
        logger.exception(
            "Unhandled exception",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "path": request.url.path,
                "method": request.method,
            },
        )

        from .config import settings

        if settings.debug:
            message = str(exc)
        else:
            message = "An unexpected error occurred"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "INTERNAL_ERROR",
                "message": message,
                "status": 500,
            },
            headers={"X-Request-ID": getattr(request.state, "request_id", "unknown")},
        )
