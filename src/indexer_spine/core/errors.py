"""
Structured error types for indexer-spine.

Every failure the control plane can produce is one of four kinds, and the
kind decides how far the failure travels:

- **Configuration:** missing/invalid ``rindexer.yaml`` or settings. Fatal at
  startup; the service refuses to start.
- **Validation:** one malformed registration item. Reported on that item,
  the batch continues.
- **Storage:** mapping table or document/artifact I/O. Aborts the current
  batch's commit and is reported as a batch-level failure.
- **Process:** the indexer exited unexpectedly or could not be spawned.
  Logged and handled by recreating the handle, never returned to the caller
  of a registration request.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                     IndexerSpineError                         │
        │        (category, retryable, context, cause)                  │
        ├──────────────────────────────────────────────────────────────┤
        │  ConfigurationError     ValidationError     StorageError      │
        │  (CONFIG)               (VALIDATION)        (STORAGE)         │
        │       │                                         │             │
        │  ProjectNameMissing                        DatabaseError      │
        │  ProjectNameTooLong                        (DATABASE)         │
        │  PostgresNotEnabled                             │             │
        │  InvalidSetting                     DatabaseConnectionError   │
        │                                                               │
        │  ProcessError (PROCESS)                                       │
        │       │                                                       │
        │  ProcessSpawnError                                            │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = StorageError("Could not write rindexer.yaml")
    >>> error.with_context(path="/workspace/rindexer.yaml").to_dict()["context"]
    {'path': '/workspace/rindexer.yaml'}

    >>> is_fatal_at_startup(PostgresNotEnabledError())
    True

Tags:
    error-handling, exception-hierarchy, error-context, indexer-spine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and logging."""

    CONFIG = "CONFIG"             # Missing/invalid document or settings
    VALIDATION = "VALIDATION"     # Malformed registration item
    STORAGE = "STORAGE"           # Document / artifact file I/O
    DATABASE = "DATABASE"         # Mapping table, connection pool
    PROCESS = "PROCESS"           # Indexer process lifecycle

    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields that are set end up in ``to_dict()``, so a context can be
    logged directly as structlog key/value pairs.

    Attributes:
        contract: Composite key (``name_reportid``) of the item involved
        internal_id: Generated indexer id involved
        path: File that was being read or written
        pid: Indexer process id
        metadata: Additional key-value pairs
    """

    contract: str | None = None
    internal_id: str | None = None
    path: str | None = None
    pid: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["contract", "internal_id", "path", "pid"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class IndexerSpineError(Exception):
    """
    Base exception for all indexer-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    only pass a message in the common case.

    Examples:
        >>> error = IndexerSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        Chaining the original exception:

        >>> try:
        ...     raise OSError("disk full")
        ... except OSError as e:
        ...     error = StorageError("write failed", cause=e)
        >>> error.cause
        OSError('disk full')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> IndexerSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StorageError("write failed").with_context(
                path=str(path), internal_id=internal_id
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS (fatal at startup)
# =============================================================================


class ConfigurationError(IndexerSpineError):
    """
    Configuration error.

    Never retryable - the document or environment must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class ProjectNameMissingError(ConfigurationError):
    """The configuration document has no top-level ``name``."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "No 'name' field found in rindexer.yaml. This is required for the service to start."
        )


class ProjectNameTooLongError(ConfigurationError):
    """The project name would not fit in a Postgres schema identifier."""

    def __init__(self, project_name: str, max_length: int = 32):
        self.project_name = project_name
        self.max_length = max_length
        super().__init__(
            f"Project name '{project_name}' is too long. "
            f"Maximum length is {max_length} characters."
        )


class PostgresNotEnabledError(ConfigurationError):
    """``storage.postgres.enabled`` is not true."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "PostgreSQL storage is not enabled in rindexer.yaml. "
            "Please set 'storage.postgres.enabled' to true."
        )


class InvalidSettingError(ConfigurationError):
    """An environment setting is missing or has an invalid value."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Invalid setting: {key}")


# =============================================================================
# VALIDATION ERRORS (per item)
# =============================================================================


class ValidationError(IndexerSpineError):
    """
    A registration item failed validation.

    Never retryable - the item must be fixed by the caller.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


# =============================================================================
# STORAGE ERRORS (batch level)
# =============================================================================


class StorageError(IndexerSpineError):
    """Document or artifact I/O failure."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class DatabaseError(StorageError):
    """Mapping-table query failure."""

    default_category = ErrorCategory.DATABASE


class DatabaseConnectionError(DatabaseError):
    """The mapping database is unreachable."""

    default_retryable = True


# =============================================================================
# PROCESS ERRORS (logged, never returned to callers)
# =============================================================================


class ProcessError(IndexerSpineError):
    """Indexer process lifecycle failure."""

    default_category = ErrorCategory.PROCESS
    default_retryable = True


class ProcessSpawnError(ProcessError):
    """The indexer executable could not be started."""

    def __init__(self, command: list[str], cause: Exception | None = None):
        self.command = command
        super().__init__(f"Failed to start indexer process: {' '.join(command)}", cause=cause)


# =============================================================================
# UTILITIES
# =============================================================================


def is_fatal_at_startup(error: Exception) -> bool:
    """Configuration and database-connectivity errors abort startup."""
    return isinstance(error, (ConfigurationError, DatabaseConnectionError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, IndexerSpineError):
        return error.category
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "IndexerSpineError",
    # Configuration
    "ConfigurationError",
    "ProjectNameMissingError",
    "ProjectNameTooLongError",
    "PostgresNotEnabledError",
    "InvalidSettingError",
    # Validation
    "ValidationError",
    # Storage
    "StorageError",
    "DatabaseError",
    "DatabaseConnectionError",
    # Process
    "ProcessError",
    "ProcessSpawnError",
    # Utilities
    "is_fatal_at_startup",
    "categorize_error",
]
