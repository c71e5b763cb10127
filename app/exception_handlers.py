"""
Global exception handlers.

Every error leaves the API in one envelope:

    {
        "error": {
            "status_code": 409,
            "error_code": "CONFLICT_DUPLICATE_SLUG",
            "message": "A tenant with this name already exists. ...",
            "type": "Conflict",
            "details": {"resource_type": "Tenant", "field": "slug", "value": "acme"},
            "path": "/api/v1/auth/register-tenant"
        }
    }

Clients branch on ``error_code``; ``message`` is for humans.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.exceptions import ErrorCode, GridError

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An unexpected error occurred. Please try again later."

ERROR_TYPES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}

# Error codes for framework-raised HTTPExceptions (404 on unknown routes, 405, ...)
HTTP_ERROR_CODES = {
    400: ErrorCode.VALIDATION_FAILED,
    401: ErrorCode.AUTH_FAILED,
    403: ErrorCode.AUTH_PERMISSION_DENIED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    409: ErrorCode.CONFLICT,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.UPSTREAM_FAILED,
    503: ErrorCode.UPSTREAM_FAILED,
}

# Server errors whose message is safe to show: the upstream provider failed, not us
PUBLIC_SERVER_ERRORS = {status.HTTP_502_BAD_GATEWAY, status.HTTP_503_SERVICE_UNAVAILABLE}


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    """Build the JSON error envelope. Empty ``details`` and ``path`` are omitted."""
    body: dict[str, Any] = {
        "status_code": status_code,
        "message": message,
        "type": ERROR_TYPES.get(status_code, "Error"),
    }
    if error_code:
        body["error_code"] = error_code.value if isinstance(error_code, ErrorCode) else error_code
    if details:
        body["details"] = details
    if path:
        body["path"] = path
    return JSONResponse(status_code=status_code, content={"error": body})


async def grid_exception_handler(request: Request, exc: GridError) -> JSONResponse:
    """
    Render a GridError.

    Internal failures are logged in full but reach the client only as a
    generic message, so storage error text never leaks.
    """
    path = request.url.path
    if exc.status_code >= 500 and exc.status_code not in PUBLIC_SERVER_ERRORS:
        logger.error(
            f"{type(exc).__name__} on {path}: {exc.message}",
            extra={"status_code": exc.status_code, "error_code": exc.error_code.value},
        )
        return create_error_response(exc.status_code, GENERIC_SERVER_ERROR, exc.error_code, path=path)

    logger.warning(
        f"{type(exc).__name__} on {path}: {exc.message}",
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value},
    )
    return create_error_response(exc.status_code, exc.message, exc.error_code, exc.details, path)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_ERROR_CODES.get(exc.status_code, ErrorCode.UNKNOWN_ERROR)
    logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")

    response = create_error_response(exc.status_code, str(exc.detail), code, path=request.url.path)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a client error: 400 with one entry per bad field."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Request validation failed on {request.url.path}: {[e['field'] for e in errors]}")

    return create_error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation error",
        ErrorCode.VALIDATION_FAILED,
        {"validation_errors": errors},
        request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}", exc_info=exc)
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        GENERIC_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GridError, grid_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
