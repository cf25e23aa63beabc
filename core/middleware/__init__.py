"""
Core middleware package.

This package provides the HTTP-level building blocks of the API:
- Error handling with sensitive data sanitization
- Structured logging with PII masking
- Per-client rate limiting with in-memory or Redis stores
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
)

from core.middleware.rate_limiting import (
    InMemoryRateLimitStore,
    PublicApplyRateLimiter,
    RateLimitDecision,
    RateLimitExceeded,
    RateLimitStore,
    RedisRateLimitStore,
    get_client_ip,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    # Rate limiting
    "InMemoryRateLimitStore",
    "PublicApplyRateLimiter",
    "RateLimitDecision",
    "RateLimitExceeded",
    "RateLimitStore",
    "RedisRateLimitStore",
    "get_client_ip",
]
