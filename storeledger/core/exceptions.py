"""
Domain exceptions for the storeledger engine.

Fatal errors (an unavailable record source, a duplicate carry-forward) are
raised. Per-record anomalies are described by the same types but recorded as
diagnostics instead of being raised.
"""

from typing import Any


class LedgerError(Exception):
    """Base exception for all storeledger errors."""

    # False for anomalies that are reported as diagnostics, never raised
    fatal = True

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "fatal": self.fatal,
        }


# Storage Exceptions
class StorageError(LedgerError):
    """Base exception for storage operations."""

    pass


class SourceUnavailableError(StorageError):
    """The record source could not deliver a snapshot for the window."""

    def __init__(self, source: str, reason: str | None = None):
        super().__init__(
            f"Record source unavailable: {source}" + (f" - {reason}" if reason else ""),
            code="SOURCE_UNAVAILABLE",
            details={"source": source, "reason": reason},
        )


class DatabaseError(StorageError):
    """Database operation failed."""

    def __init__(self, operation: str, error: str):
        super().__init__(
            f"Database error during {operation}: {error}",
            code="DATABASE_ERROR",
            details={"operation": operation, "error": error},
        )


class DuplicateTransactionError(StorageError):
    """A transaction with the same idempotency key already exists."""

    def __init__(self, idempotency_key: str):
        super().__init__(
            f"Transaction already exists with idempotency key: {idempotency_key}",
            code="DUPLICATE_TRANSACTION",
            details={"idempotency_key": idempotency_key},
        )


# Reconciliation Exceptions
class ReconciliationError(LedgerError):
    """Base exception for record reconciliation anomalies."""

    fatal = False


class MalformedRecordError(ReconciliationError):
    """A record carried values that had to be replaced with defaults."""

    def __init__(self, record_type: str, record_id: str | None, fields: list[str]):
        super().__init__(
            f"Malformed {record_type} {record_id or '<unidentified>'}: "
            f"defaulted {', '.join(fields)}",
            code="MALFORMED_RECORD",
            details={"record_type": record_type, "record_id": record_id, "fields": fields},
        )


class UnknownCategoryError(ReconciliationError):
    """A bracket tag outside the known category set."""

    def __init__(self, tag: str, description: str | None = None):
        super().__init__(
            f"Unknown category tag '{tag}', treated as 'other'",
            code="UNKNOWN_CATEGORY",
            details={"tag": tag, "description_preview": (description or "")[:100]},
        )


class CarryForwardConflictError(LedgerError):
    """A carry-forward for the same period has already been posted."""

    def __init__(
        self,
        period_label: str,
        idempotency_key: str,
        existing_id: str | None = None,
    ):
        super().__init__(
            f"Profit for {period_label} has already been carried forward",
            code="CARRY_FORWARD_CONFLICT",
            details={
                "period_label": period_label,
                "idempotency_key": idempotency_key,
                "existing_id": existing_id,
            },
        )


# Validation Exceptions
class ValidationError(LedgerError):
    """Input validation failed."""

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(
            f"Validation error for '{field}': {message}",
            code="VALIDATION_ERROR",
            details={
                "field": field,
                "message": message,
                "value": str(value)[:100] if value is not None else None,
            },
        )


class ConfigurationError(LedgerError):
    """Configuration error."""

    pass
