"""
Global error handlers for the MERIDIAN API.

Translates exceptions into consistent JSON error responses.
Never exposes internal details of unexpected failures to clients.
"""
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from meridian.errors import MeridianError, StructuralInvariantViolation

logger = structlog.get_logger("meridian.api.errors")


def _error_response(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details if details else None,
            }
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(StructuralInvariantViolation)
    async def invariant_error_handler(request: Request, exc: StructuralInvariantViolation) -> JSONResponse:
        logger.error(
            "invariant_violation",
            invariant=exc.invariant,
            expected=exc.expected,
            actual=exc.actual,
            path=request.url.path,
        )
        return _error_response(exc.status_code, exc.error_code, exc.message, exc.details)

    @app.exception_handler(MeridianError)
    async def domain_error_handler(request: Request, exc: MeridianError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("domain_error", code=exc.error_code, error=exc.message, path=request.url.path)
        else:
            logger.warning("domain_error", code=exc.error_code, error=exc.message, path=request.url.path)
        return _error_response(exc.status_code, exc.error_code, exc.message, exc.details)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning("validation_error", error=str(exc), path=request.url.path)
        return _error_response(422, "INVALID_INPUT", str(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_error",
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
        )
        return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred.")
