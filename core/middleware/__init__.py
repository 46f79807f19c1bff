"""
Core middleware package.

- Error handling: engine error taxonomy mapped to sanitized JSON errors
- Structured logging: JSON logs with credential and PII masking
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    classify_exception,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredFormatter,
    StructuredLoggingMiddleware,
    mask_sensitive_data,
    setup_logging,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "classify_exception",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredFormatter",
    "StructuredLoggingMiddleware",
    "mask_sensitive_data",
    "setup_logging",
]
