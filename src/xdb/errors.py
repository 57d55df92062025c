"""
Exception hierarchy for XDB.

All XDB exceptions inherit from XdbError, allowing callers to catch
all XDB-specific exceptions with a single except clause.

Exception Categories:
    - StatementError: Statement could not be parsed or is not supported
    - SchemaError / ConstraintViolationError: Statement conflicts with table schema
    - ConflictError / NotFoundError: Named object already exists or is missing
    - StorageError: Database file could not be read or written
    - AuthenticationError: Decryption tag or backup password did not verify
    - BackupError: Backup archive or manifest is unusable
    - ConfigurationError: Settings are missing or invalid

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (database, table, column where applicable)
    - Errors are designed to be both human-readable and machine-parseable
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Statement errors: 1xxx
ERROR_STATEMENT_SYNTAX = 1001
ERROR_STATEMENT_UNSUPPORTED = 1002
ERROR_STATEMENT_INVALID = 1003

# Schema errors: 2xxx
ERROR_SCHEMA = 2001
ERROR_CONSTRAINT_VIOLATION = 2002
ERROR_CONFLICT = 2003
ERROR_NOT_FOUND = 2004

# Storage errors: 3xxx
ERROR_STORAGE_READ = 3001
ERROR_STORAGE_WRITE = 3002
ERROR_STORAGE_INTEGRITY = 3003
ERROR_STORAGE_WRITE_IN_PROGRESS = 3004
ERROR_STORAGE_SIZE_EXCEEDED = 3005

# Security errors: 4xxx
ERROR_AUTHENTICATION = 4001

# Backup errors: 5xxx
ERROR_BACKUP_ARCHIVE = 5001
ERROR_BACKUP_FAILED = 5002

# Configuration errors: 6xxx
ERROR_CONFIGURATION = 6001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class XdbError(Exception):
    """
    Base exception for all XDB errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Statement Errors
# =============================================================================


@dataclass
class StatementError(XdbError):
    """
    Base class for errors raised before a statement executes.

    Attributes:
        statement: The offending statement text (truncated)
    """

    statement: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["statement"] = self.statement[:200]


@dataclass
class StatementSyntaxError(StatementError):
    """Raised when a statement does not match the supported grammar."""

    position: int | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Invalid statement syntax"
        if self.code == 0:
            self.code = ERROR_STATEMENT_SYNTAX
        super().__post_init__()
        self.context["position"] = self.position


@dataclass
class UnsupportedStatementError(StatementError):
    """Raised for keywords outside the dialect (transactions, ALTER, joins)."""

    keyword: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Statement type '{self.keyword}' is not supported"
        if self.code == 0:
            self.code = ERROR_STATEMENT_UNSUPPORTED
        if not self.suggestion:
            self.suggestion = "Use SELECT, INSERT, UPDATE, DELETE, CREATE or DROP"
        super().__post_init__()
        self.context["keyword"] = self.keyword


@dataclass
class StatementValidationError(StatementError):
    """Raised when a well-formed statement carries invalid values."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Statement validation failed"
        if self.code == 0:
            self.code = ERROR_STATEMENT_INVALID
        super().__post_init__()


# =============================================================================
# Schema Errors
# =============================================================================


@dataclass
class SchemaError(XdbError):
    """
    Raised when a statement references an unknown table or column.

    Attributes:
        database: Database the statement ran against
        table: Table name involved
        column: Column name involved (if any)
    """

    database: str = ""
    table: str = ""
    column: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            if self.column:
                self.message = f"Column '{self.column}' does not exist in table '{self.table}'"
            else:
                self.message = f"Table '{self.table}' does not exist"
        if self.code == 0:
            self.code = ERROR_SCHEMA
        self.context.update({
            "database": self.database,
            "table": self.table,
            "column": self.column,
        })


@dataclass
class ConstraintViolationError(XdbError):
    """
    Raised when a row would break a PRIMARY KEY or NOT NULL constraint.

    Nothing is appended or updated when this is raised.
    """

    table: str = ""
    columns: list[str] = field(default_factory=list)
    constraint: str = "PRIMARY KEY"

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        names = ", ".join(self.columns)
        if not self.message:
            if self.constraint == "PRIMARY KEY":
                self.message = (
                    f"PRIMARY KEY constraint violation: Duplicate value for column(s) '{names}'"
                )
            else:
                self.message = f"{self.constraint} constraint violation on column(s) '{names}'"
        if self.code == 0:
            self.code = ERROR_CONSTRAINT_VIOLATION
        self.context.update({
            "table": self.table,
            "columns": self.columns,
            "constraint": self.constraint,
        })


@dataclass
class ConflictError(XdbError):
    """Raised when creating a database or table whose name is taken."""

    kind: str = "database"
    name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.kind.capitalize()} '{self.name}' already exists"
        if self.code == 0:
            self.code = ERROR_CONFLICT
        self.context.update({"kind": self.kind, "name": self.name})


@dataclass
class NotFoundError(XdbError):
    """Raised when operating on a database, table, file or backup that is absent."""

    kind: str = "database"
    name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.kind.capitalize()} '{self.name}' does not exist"
        if self.code == 0:
            self.code = ERROR_NOT_FOUND
        self.context.update({"kind": self.kind, "name": self.name})


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(XdbError):
    """
    Base class for storage errors.

    Attributes:
        operation: The operation that failed (e.g., "read", "write")
        path: File involved in the operation
    """

    operation: str = ""
    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({"operation": self.operation, "path": self.path})


@dataclass
class StorageReadError(StorageError):
    """Raised when a database file cannot be read or parsed."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to read database file: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageWriteError(StorageError):
    """Raised when a database file cannot be written."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to write database file: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class WriteInProgressError(StorageError):
    """Raised when a second write is attempted while one is in flight."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Another write operation is in progress: {self.path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE_IN_PROGRESS
        if not self.suggestion:
            self.suggestion = "Retry once the current write has finished"
        super().__post_init__()


@dataclass
class SizeLimitExceededError(StorageError):
    """Raised when a serialized database would exceed the configured maximum."""

    actual_size: int = 0
    max_size: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Database size exceeds limit: {self.actual_size} > {self.max_size} bytes"
            )
        if self.code == 0:
            self.code = ERROR_STORAGE_SIZE_EXCEEDED
        if not self.suggestion:
            self.suggestion = "Increase max_database_size or delete rows"
        super().__post_init__()
        self.context.update({
            "actual_size": self.actual_size,
            "max_size": self.max_size,
        })


@dataclass
class RegistryCorruptedError(StorageError):
    """Raised when the system registry file has an unexpected layout."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "System registry corrupted"
        if self.code == 0:
            self.code = ERROR_STORAGE_INTEGRITY
        if not self.suggestion:
            self.suggestion = "Restore the registry file from a copy or remove it to start fresh"
        super().__post_init__()


# =============================================================================
# Security Errors
# =============================================================================


@dataclass
class AuthenticationError(XdbError):
    """
    Raised when an authentication tag or backup password does not verify.

    For encrypted files this means the data was tampered with or the
    wrong key was supplied. It is never treated as an empty database.
    """

    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Decryption failed: authentication tag mismatch"
        if self.code == 0:
            self.code = ERROR_AUTHENTICATION
        if not self.suggestion:
            self.suggestion = "Check the encryption key; the file may be corrupted"
        self.context["path"] = self.path


# =============================================================================
# Backup Errors
# =============================================================================


@dataclass
class BackupError(XdbError):
    """
    Base class for backup errors.

    Attributes:
        backup_id: ID of the backup involved (if known)
    """

    backup_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_BACKUP_FAILED
        self.context["backup_id"] = self.backup_id


@dataclass
class BackupArchiveError(BackupError):
    """Raised when a backup archive or its manifest cannot be read."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Invalid backup archive"
        if self.code == 0:
            self.code = ERROR_BACKUP_ARCHIVE
        super().__post_init__()


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigurationError(XdbError):
    """Raised when settings are missing or invalid."""

    setting: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration: {self.setting}"
        if self.code == 0:
            self.code = ERROR_CONFIGURATION
        self.context["setting"] = self.setting
