"""
Error handling middleware with security-compliant error sanitization.

Maps the engine's error taxonomy and common library errors onto JSON error
envelopes: {"error": {"code", "message", "path", "method", ...}}.
"""

import logging
import re
import traceback
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.errors import (
    AuthRequired,
    EmployerBlocked,
    NotFound,
    PropagationError,
    RoleNotPermitted,
    TransactionAborted,
)

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'bearer\s+[A-Za-z0-9\-_.]+', re.IGNORECASE),
]

# (exception type, HTTP status, error code, log level); first match wins
ERROR_MAP: list[tuple[type[BaseException], int, str, int]] = [
    (AuthRequired, status.HTTP_401_UNAUTHORIZED, "AUTH_REQUIRED", logging.INFO),
    (EmployerBlocked, status.HTTP_403_FORBIDDEN, "EMPLOYER_BLOCKED", logging.WARNING),
    (RoleNotPermitted, status.HTTP_403_FORBIDDEN, "ROLE_NOT_PERMITTED", logging.WARNING),
    (NotFound, status.HTTP_404_NOT_FOUND, "NOT_FOUND", logging.INFO),
    (TransactionAborted, status.HTTP_409_CONFLICT, "TRANSACTION_ABORTED", logging.ERROR),
    (PropagationError, status.HTTP_500_INTERNAL_SERVER_ERROR, "ENGINE_ERROR", logging.ERROR),
    (IntegrityError, status.HTTP_409_CONFLICT, "INTEGRITY_ERROR", logging.ERROR),
    (OperationalError, status.HTTP_503_SERVICE_UNAVAILABLE, "DATABASE_ERROR", logging.ERROR),
    (SQLAlchemyError, status.HTTP_500_INTERNAL_SERVER_ERROR, "DATABASE_ERROR", logging.ERROR),
    (ValueError, status.HTTP_400_BAD_REQUEST, "INVALID_INPUT", logging.WARNING),
    (PermissionError, status.HTTP_403_FORBIDDEN, "PERMISSION_DENIED", logging.WARNING),
    (TimeoutError, status.HTTP_504_GATEWAY_TIMEOUT, "TIMEOUT", logging.ERROR),
]

# Library errors whose text may leak internals
_GENERIC_MESSAGES = {
    "TRANSACTION_ABORTED": "The operation could not be completed; no changes were saved",
    "ENGINE_ERROR": "An unexpected error occurred",
    "INTEGRITY_ERROR": "Database integrity constraint violated",
    "DATABASE_ERROR": "A database error occurred",
    "PERMISSION_DENIED": "You don't have permission to perform this action",
    "TIMEOUT": "The request timed out",
}


def sanitize_error_message(message: str) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def get_safe_error_details(exc: BaseException, include_details: bool = False) -> dict[str, Any]:
    """Type and sanitized message of an exception, plus a traceback in debug mode."""
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_details:
        details["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return details


def classify_exception(exc: BaseException) -> tuple[int, str, str, int]:
    """
    Resolve an exception to (status code, error code, client message, log level).

    Unknown exceptions become a 500 with a generic message.
    """
    for exc_type, status_code, code, level in ERROR_MAP:
        if isinstance(exc, exc_type):
            message = _GENERIC_MESSAGES.get(code) or sanitize_error_message(str(exc))
            return status_code, code, message or "Invalid input provided", level
    return (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        logging.ERROR,
    )


def error_envelope(
    code: str,
    message: str,
    path: str,
    method: str,
    details: Any = None,
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "path": path,
        "method": method,
    }
    if details is not None:
        error["details"] = details
    if request_id:
        error["request_id"] = request_id
    return {"error": error}


def _domain_details(exc: BaseException) -> Optional[dict[str, Any]]:
    if isinstance(exc, EmployerBlocked):
        return {"reason": exc.reason}
    if isinstance(exc, RoleNotPermitted):
        return {"role": exc.role, "required_role": exc.required_role}
    if isinstance(exc, NotFound):
        return {"collection": exc.collection, "id": exc.doc_id}
    return None


def _error_response(
    exc: BaseException,
    path: str,
    method: str,
    debug: bool = False,
    request_id: Optional[str] = None,
) -> JSONResponse:
    status_code, code, message, level = classify_exception(exc)
    logger.log(
        level,
        f"{type(exc).__name__}: {method} {path} - {sanitize_error_message(str(exc))}",
        exc_info=level >= logging.ERROR,
    )

    details = _domain_details(exc)
    if details is None and debug and status_code >= 500:
        details = get_safe_error_details(exc, include_details=True)

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthRequired) else None
    return JSONResponse(
        status_code=status_code,
        content=error_envelope(code, message, path, method, details, request_id),
        headers=headers,
    )


def _format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        })
    return errors


class ErrorHandlingMiddleware:
    """
    Outermost ASGI guard: anything that escapes the route handlers and the
    registered exception handlers becomes a sanitized JSON error.
    """

    def __init__(self, app: Callable, debug: bool = False):
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self._handle_exception(exc, scope)
            await response(scope, receive, send)

    def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")
        headers = dict(scope.get("headers") or [])
        request_id = headers.get(b"x-request-id")
        return _error_response(
            exc,
            request_path,
            request_method,
            debug=self.debug,
            request_id=request_id.decode() if request_id else None,
        )


def setup_error_handlers(app, debug: bool = False):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Include tracebacks in 5xx responses
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(
                "HTTP_EXCEPTION",
                sanitize_error_message(exc.detail),
                str(request.url.path),
                request.method,
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        logger.warning(f"Validation error: {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_envelope(
                "VALIDATION_ERROR",
                "Request validation failed",
                str(request.url.path),
                request.method,
                details=_format_validation_errors(exc),
            ),
        )

    async def mapped_exception_handler(request: Request, exc: Exception):
        """Handle engine, input and database errors via ERROR_MAP."""
        return _error_response(
            exc,
            str(request.url.path),
            request.method,
            debug=debug,
            request_id=getattr(request.state, "request_id", None),
        )

    for exc_type in (PropagationError, ValueError, SQLAlchemyError, PermissionError, TimeoutError):
        app.add_exception_handler(exc_type, mapped_exception_handler)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        return _error_response(exc, str(request.url.path), request.method, debug=debug)
