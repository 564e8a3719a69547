"""Custom exception classes for the statement import pipeline.

Every exception carries an error_code from errors.py so that API
responses and the import's stored ErrorMessage stay consistent.
"""

from typing import Any


class StatementImportError(Exception):
    """Base exception for all statement import errors.

    Attributes:
        error_code: Code from the error catalog (e.g., "PARSE_001")
        details: Additional context about the error (for logs and clients)
        http_status: HTTP status code to return
    """

    default_status = 500

    def __init__(
        self,
        error_code: str,
        details: dict[str, Any] | None = None,
        http_status: int | None = None,
    ):
        self.error_code = error_code
        self.details = details or {}
        self.http_status = http_status or self.default_status
        super().__init__(error_code)


class ValidationError(StatementImportError):
    """Raised for bad input (file type, empty file, missing fields).

    Raised before any import exists; never retryable without fixing the input.
    """

    default_status = 400


class NotFoundError(StatementImportError):
    """Raised when an import or one of its parsed transactions does not exist."""

    default_status = 404


class AuthorizationError(StatementImportError):
    """Raised when the acting user does not own the import."""

    default_status = 403


class InvalidStatusError(StatementImportError):
    """Raised when a transition is attempted from a disallowed status.

    Terminal: signals a caller bug or a stale UI, not a transient fault.
    """

    default_status = 409

    def __init__(self, current_status: str, operation: str):
        super().__init__(
            "IMPORT_003",
            {"status": current_status, "operation": operation},
        )
        self.current_status = current_status
        self.operation = operation


class NoTransactionsError(StatementImportError):
    """Raised when an import would end up with no parsed transactions."""

    default_status = 422

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__("PARSE_003", details)


class FileStorageError(StatementImportError):
    """Raised when the raw statement file cannot be stored."""

    pass


class ExtractionError(StatementImportError):
    """Raised when no text can be extracted from the uploaded document."""

    default_status = 422


class ParsingError(StatementImportError):
    """Raised when the AI parsing service fails."""

    default_status = 502


class CategoryResolutionError(StatementImportError):
    """Raised when no category (not even a fallback) can be assigned."""

    default_status = 422


class TransactionCreationError(StatementImportError):
    """Raised when ledger transactions could not be created after confirming.

    The import is already Confirmed when this is raised, so it must be
    surfaced loudly; retrying the whole upload would duplicate data.
    """

    pass


class ConcurrencyConflictError(StatementImportError):
    """Raised when a stale write is rejected by the persistence layer.

    Unlike InvalidStatusError this is retryable after reloading the import.
    """

    default_status = 409

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__("DB_002", details)
