"""
Application error taxonomy and the handlers that turn it into HTTP responses.

Every failure the auth flow can produce is one of a closed set of kinds.
Routes and services raise the matching exception; the handlers registered
here map the kind to a status code and a generic message. Internal detail
is only ever logged, never returned to the client.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the API."""
    VALIDATION_ERROR = "validation_error"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_INACTIVE = "account_inactive"
    INVALID_TOKEN = "invalid_token"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    INTERNAL_FAILURE = "internal_failure"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.ACCOUNT_INACTIVE: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.INTERNAL_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppError(Exception):
    """Base class for all classified application errors."""

    kind: ErrorKind = ErrorKind.INTERNAL_FAILURE
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION_ERROR
    default_message = "Invalid request"


class InvalidCredentials(AppError):
    # Same text for unknown email and wrong password (no account enumeration)
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class AccountInactive(AppError):
    kind = ErrorKind.ACCOUNT_INACTIVE
    default_message = "Account is inactive"


class InvalidToken(AppError):
    kind = ErrorKind.INVALID_TOKEN
    default_message = "Invalid or expired token"


class Conflict(AppError):
    kind = ErrorKind.CONFLICT
    default_message = "Resource already exists"


class RateLimited(AppError):
    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many requests"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(
            message or f"Too many attempts. Please try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )


class InternalFailure(AppError):
    kind = ErrorKind.INTERNAL_FAILURE


def error_body(message: str, kind: ErrorKind, request: Request) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message, "error": kind.value}
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body["requestId"] = request_id
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers mapping every error kind to its HTTP response."""

    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError):
        if exc.kind is ErrorKind.INTERNAL_FAILURE:
            logger.error(f"Internal failure on {request.method} {request.url.path}: {exc.message}")
            message = InternalFailure.default_message
        else:
            message = exc.message
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(message, exc.kind, request),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
            for err in exc.errors()
        ]
        body = error_body("Validation error", ErrorKind.VALIDATION_ERROR, request)
        body["errors"] = errors
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        body: Dict[str, Any] = {"success": False, "message": exc.detail or "HTTP error"}
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            body["requestId"] = request_id
        return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))

