"""Custom exception hierarchy for eventkb.

All application exceptions inherit from :class:`EventKBError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "tesseract") caused the
failure, and a ``kind`` string that the API layer maps onto an HTTP status.

The hierarchy is organized by caller-visible failure class:

    EventKBError  (base -- catch-all for any eventkb error)
    +-- AuthenticationRequired   (no verified caller identity)
    +-- PermissionDenied         (caller identity not allowed)
    +-- InvalidArgument          (malformed or missing request fields)
    +-- NotFound                 (event / record does not exist)
    +-- ExtractionError          (PDF parse or OCR engine failure)
    |   +-- EmptyContentError    (extraction produced no usable text)
    +-- ExternalServiceError     (embedding, vector index or LLM failure)
    +-- PartialCleanupError      (teardown finished with step errors)
    +-- EventRecordDeletionError (final teardown step failed)
    +-- OperationTimeoutError    (wall-clock budget exceeded)
    +-- ConfigurationError       (startup / missing config)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.models.teardown import TeardownReport


class EventKBError(Exception):
    """Base exception for all eventkb errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    kind: str = "internal"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------


class AuthenticationRequired(EventKBError):
    """Raised when a request carries no verifiable caller identity."""

    kind = "unauthenticated"

    def __init__(
        self,
        message: str = "Authentication required",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PermissionDenied(EventKBError):
    """Raised when the caller is authenticated but not allowed to act."""

    kind = "permission-denied"

    def __init__(
        self,
        message: str = "Permission denied",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidArgument(EventKBError):
    """Raised on missing or malformed request fields."""

    kind = "invalid-argument"

    def __init__(
        self,
        message: str = "Invalid argument",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFound(EventKBError):
    """Raised when the addressed event or record does not exist."""

    kind = "not-found"

    def __init__(
        self,
        message: str = "Not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------


class ExtractionError(EventKBError):
    """Raised when PDF parsing or OCR fails outright."""

    def __init__(
        self,
        message: str = "Content extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyContentError(ExtractionError):
    """Raised when extraction succeeds but yields no text to index."""

    def __init__(
        self,
        message: str = "No text content found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------


class ExternalServiceError(EventKBError):
    """Raised when the embedding model, vector index or LLM call fails.

    Covers quota exhaustion, network failures and malformed responses.
    No automatic retry is performed; retries are the caller's concern.
    """

    def __init__(
        self,
        message: str = "External service call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class OperationTimeoutError(EventKBError):
    """Raised when an operation exceeds its configured wall-clock budget."""

    kind = "deadline-exceeded"

    def __init__(
        self,
        message: str = "Operation timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Teardown errors
# ---------------------------------------------------------------------------


class PartialCleanupError(EventKBError):
    """Raised when a teardown completed but one or more steps recorded errors.

    The full :class:`~src.models.teardown.TeardownReport` is attached so
    callers can inspect what was and wasn't removed.
    """

    def __init__(
        self,
        report: TeardownReport,
        message: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._report = report
        super().__init__(
            message=message or f"Teardown finished with {len(report.errors)} error(s)",
            provider_name=provider_name,
        )

    @property
    def report(self) -> TeardownReport:
        return self._report


class EventRecordDeletionError(EventKBError):
    """Raised when the event record itself could not be deleted.

    This is the only fatal teardown step.  The partial report of the
    earlier steps is attached.
    """

    def __init__(
        self,
        report: TeardownReport,
        message: str = "Failed to delete event record",
        provider_name: str | None = None,
    ) -> None:
        self._report = report
        super().__init__(message=message, provider_name=provider_name)

    @property
    def report(self) -> TeardownReport:
        return self._report


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(EventKBError):
    """Raised on invalid or missing configuration at startup."""

    def __init__(
        self,
        message: str = "Configuration error",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
