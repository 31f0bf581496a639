"""
Observability module: structured logging with request correlation.
"""

from contentstore.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    request_context,
    setup_logging,
)

__all__ = [
    "JsonFormatter",
    "LogLevel",
    "StructuredLogger",
    "request_context",
    "setup_logging",
]
