"""API error handling middleware: consistent error responses.

Registers FastAPI exception handlers that convert domain exceptions into
standardised ``{"error": {"code": "...", "message": "...", "details": ...}}``
JSON responses.

Status code mapping:
- ``ValueError`` and request validation failures → 400 Bad Request
- ``LookupError`` (unknown record, no geocoding match) → 404 Not Found
- ``SyncInProgressError`` → 409 Conflict
- Geocoding and summarizer provider failures → 502 Bad Gateway
- Any other ``Exception`` → 500 Internal Server Error
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from logos.api.models import ErrorDetail, ErrorResponse
from logos.integrations.geocoding import (
    GeocodeNotFoundError,
    GeocodePermissionError,
    GeocodingError,
)
from logos.integrations.summarizer import SummarizerError
from logos.integrations.sync import SyncInProgressError

logger = logging.getLogger(__name__)


def _error(
    status_code: int, code: str, message: str, details: dict[str, Any] | None = None
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    """Return 400 for validation / value errors."""
    logger.info("Validation error: %s", exc)
    return _error(400, "VALIDATION_ERROR", str(exc))


async def _handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 for malformed query parameters or bodies."""
    logger.info("Request validation failed on %s: %s", request.url.path, exc.errors())
    return _error(
        400,
        "VALIDATION_ERROR",
        "Request validation failed",
        {"errors": jsonable_encoder(exc.errors())},
    )


async def _handle_lookup_error(request: Request, exc: LookupError) -> JSONResponse:
    """Return 404 when a requested record does not exist."""
    message = exc.args[0] if exc.args else "Not found"
    logger.info("Not found: %s", message)
    return _error(404, "NOT_FOUND", str(message))


async def _handle_geocode_not_found(
    request: Request, exc: GeocodeNotFoundError
) -> JSONResponse:
    logger.info("Geocoding found no match: %s", exc)
    return _error(404, "GEOCODE_NOT_FOUND", str(exc))


async def _handle_geocode_permission(
    request: Request, exc: GeocodePermissionError
) -> JSONResponse:
    """Return 502 with the remediation message when the map provider refuses."""
    logger.warning("Geocoding permission denied: %s", exc.provider_message)
    details = {"provider_message": exc.provider_message} if exc.provider_message else None
    return _error(502, "GEOCODING_PERMISSION_DENIED", str(exc), details)


async def _handle_geocoding_error(request: Request, exc: GeocodingError) -> JSONResponse:
    logger.warning("Geocoding failed: %s", exc)
    return _error(502, "GEOCODING_FAILED", str(exc))


async def _handle_summarizer_error(request: Request, exc: SummarizerError) -> JSONResponse:
    logger.warning("Summarizer unavailable: %s", exc)
    return _error(502, "SUMMARIZER_UNAVAILABLE", str(exc))


async def _handle_sync_in_progress(request: Request, exc: SyncInProgressError) -> JSONResponse:
    logger.info("Rejected sync request: %s", exc)
    return _error(409, "SYNC_IN_PROGRESS", str(exc))


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    This sits above the Starlette exception handler layer, ensuring that
    even exceptions not caught by ``add_exception_handler`` are converted
    to the standard error envelope rather than bubbling up as raw 500s.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            return _error(500, "INTERNAL_ERROR", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application.

    Call this from ``create_app()`` after constructing the ``FastAPI`` instance.

    Handlers are resolved along the exception's MRO, so the geocoding
    subclasses are registered explicitly ahead of their ``LookupError`` and
    ``PermissionError`` bases.
    """
    app.add_exception_handler(RequestValidationError, _handle_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, _handle_value_error)  # type: ignore[arg-type]
    app.add_exception_handler(LookupError, _handle_lookup_error)  # type: ignore[arg-type]
    app.add_exception_handler(GeocodeNotFoundError, _handle_geocode_not_found)  # type: ignore[arg-type]
    app.add_exception_handler(GeocodePermissionError, _handle_geocode_permission)  # type: ignore[arg-type]
    app.add_exception_handler(GeocodingError, _handle_geocoding_error)  # type: ignore[arg-type]
    app.add_exception_handler(SummarizerError, _handle_summarizer_error)  # type: ignore[arg-type]
    app.add_exception_handler(SyncInProgressError, _handle_sync_in_progress)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)
