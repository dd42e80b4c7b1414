"""Utility modules for eventkb.

- **errors** -- Exception hierarchy rooted at EventKBError; each subclass
  carries a ``kind`` the API maps onto an HTTP status.
- **concurrency** -- order-preserving bounded gather, timeouts, batching.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from src.utils.concurrency import batched, run_with_timeout, throttled_gather
from src.utils.errors import (
    AuthenticationRequired,
    ConfigurationError,
    EmptyContentError,
    EventKBError,
    EventRecordDeletionError,
    ExternalServiceError,
    ExtractionError,
    InvalidArgument,
    NotFound,
    OperationTimeoutError,
    PartialCleanupError,
    PermissionDenied,
)
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "AuthenticationRequired",
    "ConfigurationError",
    "EmptyContentError",
    "EventKBError",
    "EventRecordDeletionError",
    "ExternalServiceError",
    "ExtractionError",
    "InvalidArgument",
    "NotFound",
    "OperationTimeoutError",
    "PartialCleanupError",
    "PermissionDenied",
    "batched",
    "configure_logging",
    "get_logger",
    "run_with_timeout",
    "throttled_gather",
]
