"""
Error taxonomy for the sidecar and the FastAPI handlers that render it.
Every error reaches the caller as {"error": ..., "error_description": ...}; no stack traces.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SidecarError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "server_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.error, "error_description": self.message}


class ValidationError(SidecarError):
    """Bad input shape or bad hash format. Never retried by the sidecar."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_request"


class InvalidHashFormat(ValidationError):
    pass


class NotFoundError(SidecarError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class UpstreamError(SidecarError):
    """Admin API unreachable, timed out, or answered with a server error."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "upstream_error"


class StoreError(SidecarError):
    """Database unreachable or a query failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "store_error"


class ExpiredClientError(SidecarError):
    """Only raised by the token hook."""

    status_code = status.HTTP_403_FORBIDDEN
    error = "access_denied"


def error_response(exc: SidecarError, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def _sidecar_error_handler(request: Request, exc: SidecarError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.error, exc.message)
    return error_response(exc)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Pydantic body errors are 400 here (FastAPI default is 422)."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    else:
        message = "malformed request body"
    return error_response(ValidationError(message))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(SidecarError("internal error"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SidecarError, _sidecar_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
