"""
Error handling middleware with security-compliant error sanitization.

Every error leaves the API as
`{"error": {"code", "message", "path", "method", "details"?}}`.
"""

import logging
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Optional
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
import re

from core.exceptions import ApplicationLedgerError, CaptchaRejected
from core.integrations.captcha import CaptchaUnavailable
from core.middleware.rate_limiting import RateLimitExceeded
from core.security import AuthenticationError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never leave the API
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'(postgres(ql)?|redis)(\+\w+)?://[^\s"]+', re.IGNORECASE),
    re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'),
]


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = message if isinstance(message, str) else str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_details: bool = False) -> dict[str, Any]:
    """
    Extract safe error details without exposing sensitive information.

    Args:
        exc: The exception to extract details from
        include_details: Whether to include the traceback (development only)

    Returns:
        Dictionary with safe error details
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_details:
        details["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return details


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """
    Format validation errors into a user-friendly structure.

    Input values are never echoed back.
    """
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        })
    return errors


@dataclass
class ErrorInfo:
    status_code: int
    code: str
    message: str
    details: Optional[Any] = None
    headers: Optional[dict[str, str]] = None


def classify_exception(exc: Exception, method: str, path: str, debug: bool = False) -> ErrorInfo:
    """
    Map an exception to its HTTP status and error code, logging it once.

    Args:
        exc: The exception to classify
        method: Request method (for log context)
        path: Request path (for log context)
        debug: Whether to include detailed error information

    Returns:
        Error information for the response
    """
    where = f"{method} {path}"

    if isinstance(exc, StarletteHTTPException):
        details = None
        if isinstance(exc.detail, str):
            message = sanitize_error_message(exc.detail)
        else:
            message = "Request failed"
            details = exc.detail
        logger.warning(f"HTTP exception: {where} - Status: {exc.status_code}, Message: {message}")
        return ErrorInfo(exc.status_code, "HTTP_EXCEPTION", message, details, getattr(exc, "headers", None))

    if isinstance(exc, RequestValidationError):
        details = format_validation_errors(exc)
        logger.warning(f"Validation error: {where} - Errors: {details}")
        return ErrorInfo(
            status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Request validation failed", details
        )

    if isinstance(exc, ApplicationLedgerError):
        logger.warning(f"Application ledger error: {where} - {exc.code}")
        return ErrorInfo(exc.status_code, exc.code.upper(), sanitize_error_message(exc.message))

    if isinstance(exc, RateLimitExceeded):
        return ErrorInfo(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "RATE_LIMIT_EXCEEDED",
            "Too many requests. Please try again later.",
            {"retry_after": exc.retry_after},
            {"Retry-After": str(exc.retry_after)},
        )

    if isinstance(exc, CaptchaRejected):
        logger.info(f"Captcha rejected: {where} - {exc.reason}")
        return ErrorInfo(
            status.HTTP_400_BAD_REQUEST, "CAPTCHA_FAILED", "Captcha verification failed"
        )

    if isinstance(exc, CaptchaUnavailable):
        logger.error(f"Captcha unavailable: {where} - {exc}")
        return ErrorInfo(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "CAPTCHA_UNAVAILABLE",
            "Captcha verification is unavailable",
        )

    if isinstance(exc, AuthenticationError):
        logger.info(f"Authentication failed: {where} - {exc}")
        return ErrorInfo(
            status.HTTP_401_UNAUTHORIZED,
            "AUTHENTICATION_FAILED",
            "Invalid or missing credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if isinstance(exc, IntegrityError):
        logger.error(f"Database integrity error: {where}", exc_info=not debug)
        return ErrorInfo(
            status.HTTP_409_CONFLICT,
            "INTEGRITY_ERROR",
            "Database integrity constraint violated",
            get_safe_error_details(exc, include_details=True) if debug else None,
        )

    if isinstance(exc, OperationalError):
        logger.error(f"Database operational error: {where}", exc_info=True)
        return ErrorInfo(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "DATABASE_ERROR",
            "Database service temporarily unavailable",
        )

    if isinstance(exc, SQLAlchemyError):
        logger.error(f"SQLAlchemy error: {where}", exc_info=not debug)
        return ErrorInfo(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "DATABASE_ERROR",
            "A database error occurred",
            get_safe_error_details(exc, include_details=True) if debug else None,
        )

    if isinstance(exc, ValueError):
        message = sanitize_error_message(str(exc)) or "Invalid input provided"
        logger.warning(f"Value error: {where} - {message}")
        return ErrorInfo(status.HTTP_400_BAD_REQUEST, "INVALID_INPUT", message)

    logger.error(
        f"Unhandled exception: {where} - "
        f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
        exc_info=True,
    )
    return ErrorInfo(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        get_safe_error_details(exc, include_details=True) if debug else None,
    )


def build_error_response(
    info: ErrorInfo, path: str, method: str, request_id: Optional[str] = None
) -> JSONResponse:
    """Render an `ErrorInfo` as the standard error body."""
    body = {
        "error": {
            "code": info.code,
            "message": info.message,
            "path": path,
            "method": method,
        }
    }
    if info.details is not None:
        body["error"]["details"] = info.details
    if request_id:
        body["error"]["request_id"] = request_id

    return JSONResponse(status_code=info.status_code, content=body, headers=info.headers)


class ErrorHandlingMiddleware:
    """
    Last-resort ASGI error boundary.

    Converts exceptions escaping the app into the standard error body, unless
    a response has already started streaming.
    """

    def __init__(self, app: Callable, debug: bool = False):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
            debug: Whether to include detailed error information
        """
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: dict) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                logger.error(
                    f"Exception after response started: {scope.get('method')} {scope.get('path')}",
                    exc_info=True,
                )
                return
            response = self._handle_exception(exc, scope)
            await response(scope, receive, send)

    def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")
        info = classify_exception(exc, request_method, request_path, self.debug)

        request_id = None
        for name, value in scope.get("headers", []):
            if name == b"x-request-id":
                request_id = value.decode()
                break

        return build_error_response(info, request_path, request_method, request_id)


def setup_error_handlers(app, debug: bool = False):
    """
    Register exception handlers on a FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Whether to include detailed error information
    """

    async def handle(request: Request, exc: Exception) -> JSONResponse:
        info = classify_exception(exc, request.method, request.url.path, debug)
        request_id = getattr(request.state, "request_id", None)
        return build_error_response(info, request.url.path, request.method, request_id)

    for exc_class in (
        StarletteHTTPException,
        RequestValidationError,
        ApplicationLedgerError,
        RateLimitExceeded,
        CaptchaRejected,
        CaptchaUnavailable,
        AuthenticationError,
        SQLAlchemyError,
        ValueError,
    ):
        app.add_exception_handler(exc_class, handle)
