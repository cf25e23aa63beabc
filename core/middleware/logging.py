"""
Structured logging middleware with PII masking.

Request logs never carry candidate contact data, captcha tokens or bearer
tokens: bodies, query strings and headers are masked before they are logged,
and client IPs are truncated.
"""

import logging
import time
import json
import re
import uuid
from contextvars import ContextVar
from typing import Callable, Any, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import traceback

from core.middleware.rate_limiting import get_client_ip

logger = logging.getLogger(__name__)

# Request id of the request being handled, attached to every log record
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


# Sensitive field patterns, values are always redacted
SENSITIVE_FIELD_PATTERNS = [
    re.compile(r'password', re.IGNORECASE),
    re.compile(r'token', re.IGNORECASE),
    re.compile(r'recaptcha', re.IGNORECASE),
    re.compile(r'api[_-]?key', re.IGNORECASE),
    re.compile(r'secret', re.IGNORECASE),
    re.compile(r'authorization', re.IGNORECASE),
    re.compile(r'cookie', re.IGNORECASE),
    re.compile(r'session', re.IGNORECASE),
]

# Candidate profile fields, values are replaced by a placeholder
PII_FIELDS = {
    'email', 'candidate_email', 'telefono', 'phone', 'nombre_completo',
    'full_name', 'mensaje', 'message', 'salario_expectativa', 'resumen_url',
    'linkedin_url',
}

# PII patterns to detect and mask inside free text
PII_PATTERNS = [
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), '[EMAIL]'),
    (re.compile(r'\+\d{1,3}[-.\s]?\d{1,4}[-.\s]?\d{1,4}[-.\s]?\d{1,9}'), '[PHONE]'),
    (re.compile(r'\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b'), '[PHONE]'),
]


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates a credential."""
    return any(pattern.search(field_name) for pattern in SENSITIVE_FIELD_PATTERNS)


def mask_text(value: str) -> str:
    """Replace emails and phone numbers in free text."""
    for pattern, replacement in PII_PATTERNS:
        value = pattern.sub(replacement, value)
    return value


def mask_sensitive_data(data: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """
    Recursively mask sensitive data in dictionaries and lists.

    Args:
        data: Data structure to mask
        depth: Current recursion depth
        max_depth: Maximum recursion depth

    Returns:
        Data structure with credentials redacted and PII masked
    """
    if depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            key_str = str(key)
            if is_sensitive_field(key_str):
                masked[key] = "[REDACTED]"
            elif key_str.lower() in PII_FIELDS and value not in (None, ""):
                masked[key] = "[PII]"
            else:
                masked[key] = mask_sensitive_data(value, depth + 1, max_depth)
        return masked

    elif isinstance(data, list):
        return [mask_sensitive_data(item, depth + 1, max_depth) for item in data]

    elif isinstance(data, str):
        return mask_text(data)

    return data


def mask_headers(headers: dict) -> dict:
    """
    Mask sensitive headers, keeping the authorization scheme visible.

    Args:
        headers: Dictionary of HTTP headers

    Returns:
        Headers with sensitive values masked
    """
    masked = {}
    for key, value in headers.items():
        key_lower = key.lower()
        if key_lower == 'authorization' and isinstance(value, str) and ' ' in value:
            masked[key] = f"{value.split(' ', 1)[0]} [REDACTED]"
        elif is_sensitive_field(key_lower):
            masked[key] = "[REDACTED]"
        else:
            masked[key] = value
    return masked


def should_log_request(path: str) -> bool:
    """Health probes are not logged."""
    skip_paths = ['/health', '/healthz', '/ready']
    return not any(path.startswith(skip) for skip in skip_paths)


def mask_ip(ip: str) -> str:
    """
    Truncate an IP address for logging.

    IPv4 keeps the first three octets, IPv6 the first three hextets.
    """
    if not ip or ip == 'unknown':
        return 'unknown'
    if '.' in ip and ip.count('.') == 3:
        parts = ip.split('.')
        return f"{parts[0]}.{parts[1]}.{parts[2]}.xxx"
    if ':' in ip:
        hextets = ip.split(':')
        return ':'.join(hextets[:3]) + '::xxxx'
    return 'unknown'


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one `request_started` and one `request_completed` event per request.

    Assigns (or propagates) the `x-request-id` header and exposes it to every
    log record emitted while the request is handled.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        log_response_body: bool = False,
        max_body_size: int = 1024,
    ):
        """
        Initialize logging middleware.

        Args:
            app: The ASGI application
            log_request_body: Whether to log request bodies (masked)
            log_response_body: Whether to log response sizes
            max_body_size: Maximum body size to log (bytes)
        """
        super().__init__(app)
        self.log_request_body = log_request_body
        self.log_response_body = log_response_body
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('x-request-id') or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)

        try:
            if not should_log_request(request.url.path):
                response = await call_next(request)
                response.headers['x-request-id'] = request_id
                return response

            return await self._dispatch_logged(request, call_next, request_id)
        finally:
            request_id_ctx.reset(token)

    async def _dispatch_logged(
        self, request: Request, call_next: Callable, request_id: str
    ) -> Response:
        start_time = time.perf_counter()

        request_log = {
            'event': 'request_started',
            'request_id': request_id,
            'method': request.method,
            'path': request.url.path,
            'query_params': mask_sensitive_data(dict(request.query_params)),
            'client_ip': mask_ip(get_client_ip(request)),
            'user_agent': request.headers.get('user-agent', 'unknown'),
            'headers': mask_headers(dict(request.headers)),
        }

        if self.log_request_body and request.method in ['POST', 'PUT', 'PATCH']:
            body = await self._get_request_body(request)
            if body is not None:
                request_log['body'] = mask_sensitive_data(body)

        logger.info(json.dumps(request_log, default=str))

        response = None
        error_details = None
        try:
            response = await call_next(request)
            return response
        except Exception as exc:
            error_details = {'type': type(exc).__name__, 'message': mask_text(str(exc))}
            logger.error(
                f"Request processing error: {request.method} {request.url.path}",
                exc_info=True,
            )
            raise
        finally:
            duration = time.perf_counter() - start_time
            status_code = response.status_code if response else 500

            response_log = {
                'event': 'request_completed',
                'request_id': request_id,
                'method': request.method,
                'path': request.url.path,
                'duration_ms': round(duration * 1000, 2),
                'status_code': status_code,
            }
            if error_details:
                response_log['error'] = error_details
            if self.log_response_body and response is not None:
                response_log['content_length'] = response.headers.get('content-length')

            if status_code >= 500:
                logger.error(json.dumps(response_log))
            elif status_code >= 400:
                logger.warning(json.dumps(response_log))
            else:
                logger.info(json.dumps(response_log))

            if response is not None:
                response.headers['x-request-id'] = request_id

    async def _get_request_body(self, request: Request) -> Any:
        """Read a JSON body for logging; other content types are summarised."""
        content_type = request.headers.get('content-type', '')
        if 'application/json' not in content_type:
            return {'_content_type': content_type} if content_type else None

        body_bytes = await request.body()
        if len(body_bytes) > self.max_body_size:
            return {'_truncated': True, '_size': len(body_bytes)}
        try:
            return json.loads(body_bytes.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return {'_unparseable': True, '_size': len(body_bytes)}


class RequestIdFilter(logging.Filter):
    """Attach the current request id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'request_id'):
            record.request_id = request_id_ctx.get()
        return True


class StructuredFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        request_id = getattr(record, 'request_id', None)
        if request_id:
            log_data['request_id'] = request_id

        if hasattr(record, 'user_id'):
            log_data['user_id'] = record.user_id

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Whether to format logs as JSON
    """
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.addFilter(RequestIdFilter())

    if json_logs:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s'
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
