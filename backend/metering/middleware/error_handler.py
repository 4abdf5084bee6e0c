"""Global error handling middleware."""

import traceback

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse

from metering.billing.exceptions import (
    ProviderNotConfiguredError, QuotaExceededError, QuotaUnavailableError,
)

logger = structlog.get_logger()


def register_error_handlers(app: FastAPI):
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(QuotaExceededError)
    async def quota_exceeded_handler(request: Request, exc: QuotaExceededError):
        """Business error: the tenant needs a larger plan."""
        return ORJSONResponse(status_code=429, content=exc.to_response())

    @app.exception_handler(QuotaUnavailableError)
    async def quota_unavailable_handler(request: Request, exc: QuotaUnavailableError):
        logger.error("quota_unavailable", path=request.url.path, error=str(exc))
        return ORJSONResponse(
            status_code=503,
            content={"detail": "Usage accounting is temporarily unavailable"},
        )

    @app.exception_handler(ProviderNotConfiguredError)
    async def provider_not_configured_handler(request: Request, exc: ProviderNotConfiguredError):
        logger.warning("provider_not_configured", path=request.url.path, service=exc.service.value)
        return ORJSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Return structured validation errors."""
        errors = []
        for error in exc.errors():
            loc = " -> ".join(str(l) for l in error.get("loc", []))
            errors.append({
                "field": loc,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "value_error"),
            })

        logger.warning(
            "validation_error",
            path=request.url.path,
            method=request.method,
            errors=errors,
        )

        return ORJSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions - log and return 500."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            traceback=traceback.format_exc(),
        )

        return ORJSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
