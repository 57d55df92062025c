"""
Unit tests for error hierarchy.

Tests cover:
- Base XdbError behavior
- Statement errors with context
- Schema and constraint errors
- Storage errors
- Error serialization
"""

import pytest

from xdb.errors import (
    ERROR_AUTHENTICATION,
    ERROR_BACKUP_ARCHIVE,
    ERROR_CONFLICT,
    ERROR_CONSTRAINT_VIOLATION,
    ERROR_NOT_FOUND,
    ERROR_SCHEMA,
    ERROR_STATEMENT_SYNTAX,
    ERROR_STATEMENT_UNSUPPORTED,
    ERROR_STORAGE_SIZE_EXCEEDED,
    ERROR_STORAGE_WRITE,
    ERROR_STORAGE_WRITE_IN_PROGRESS,
    AuthenticationError,
    BackupArchiveError,
    BackupError,
    ConflictError,
    ConstraintViolationError,
    NotFoundError,
    SchemaError,
    SizeLimitExceededError,
    StatementError,
    StatementSyntaxError,
    StorageError,
    StorageWriteError,
    UnsupportedStatementError,
    WriteInProgressError,
    XdbError,
)


class TestXdbError:
    """Tests for base XdbError."""

    def test_basic_error(self) -> None:
        """Create a basic error with message."""
        err = XdbError(message="Something went wrong", code=9999)
        assert err.message == "Something went wrong"
        assert err.code == 9999
        assert err.suggestion is None
        assert err.context == {}

    def test_str_includes_code_and_suggestion(self) -> None:
        """String form shows code, message and suggestion."""
        err = XdbError(message="Failed", code=1, suggestion="Try again")
        text = str(err)
        assert text.startswith("[E1] Failed")
        assert "Suggestion: Try again" in text

    def test_is_exception(self) -> None:
        """XdbError can be raised and caught."""
        with pytest.raises(XdbError):
            raise XdbError(message="boom", code=1)

    def test_to_dict(self) -> None:
        """Serialization includes type, code and context."""
        err = ConflictError(kind="database", name="app")
        data = err.to_dict()
        assert data["error_type"] == "ConflictError"
        assert data["code"] == ERROR_CONFLICT
        assert data["message"] == "Database 'app' already exists"
        assert data["context"] == {"kind": "database", "name": "app"}


class TestStatementErrors:
    """Tests for statement errors."""

    def test_syntax_error_defaults(self) -> None:
        """Syntax errors get a default message and code."""
        err = StatementSyntaxError(statement="SELEC * FROM t", position=0)
        assert err.code == ERROR_STATEMENT_SYNTAX
        assert err.message == "Invalid statement syntax"
        assert err.context["statement"] == "SELEC * FROM t"
        assert err.context["position"] == 0
        assert isinstance(err, StatementError)

    def test_statement_is_truncated_in_context(self) -> None:
        """Long statements are truncated in context."""
        err = StatementSyntaxError(statement="x" * 500)
        assert len(err.context["statement"]) == 200

    def test_unsupported_statement(self) -> None:
        """Unsupported keywords are named in the message."""
        err = UnsupportedStatementError(keyword="BEGIN")
        assert err.code == ERROR_STATEMENT_UNSUPPORTED
        assert "BEGIN" in err.message
        assert err.suggestion is not None
        assert err.context["keyword"] == "BEGIN"


class TestSchemaErrors:
    """Tests for schema and constraint errors."""

    def test_unknown_column_message(self) -> None:
        """Column errors name the column and table."""
        err = SchemaError(database="app", table="users", column="email")
        assert err.code == ERROR_SCHEMA
        assert err.message == "Column 'email' does not exist in table 'users'"
        assert err.context["database"] == "app"

    def test_unknown_table_message(self) -> None:
        """Table errors name the table."""
        err = SchemaError(table="orders")
        assert err.message == "Table 'orders' does not exist"

    def test_primary_key_violation(self) -> None:
        """PRIMARY KEY violations name the key columns."""
        err = ConstraintViolationError(table="users", columns=["id"])
        assert err.code == ERROR_CONSTRAINT_VIOLATION
        assert err.message == (
            "PRIMARY KEY constraint violation: Duplicate value for column(s) 'id'"
        )

    def test_not_null_violation(self) -> None:
        """Other constraints use their own name."""
        err = ConstraintViolationError(table="users", columns=["name"], constraint="NOT NULL")
        assert err.message == "NOT NULL constraint violation on column(s) 'name'"
        assert err.context["constraint"] == "NOT NULL"

    def test_not_found(self) -> None:
        """NotFoundError names the kind and object."""
        err = NotFoundError(kind="table", name="users")
        assert err.code == ERROR_NOT_FOUND
        assert err.message == "Table 'users' does not exist"


class TestStorageErrors:
    """Tests for storage errors."""

    def test_write_error(self) -> None:
        """Write errors carry the underlying error and path."""
        err = StorageWriteError(operation="write", path="/tmp/a.xdb", underlying_error="disk full")
        assert err.code == ERROR_STORAGE_WRITE
        assert "disk full" in err.message
        assert err.context["path"] == "/tmp/a.xdb"
        assert isinstance(err, StorageError)

    def test_write_in_progress(self) -> None:
        """Concurrent writes have their own code."""
        err = WriteInProgressError(operation="write", path="a.xdb")
        assert err.code == ERROR_STORAGE_WRITE_IN_PROGRESS
        assert "in progress" in err.message

    def test_size_limit(self) -> None:
        """Size errors report both sizes."""
        err = SizeLimitExceededError(actual_size=10, max_size=5)
        assert err.code == ERROR_STORAGE_SIZE_EXCEEDED
        assert err.message == "Database size exceeds limit: 10 > 5 bytes"
        assert err.context["actual_size"] == 10


class TestSecurityAndBackupErrors:
    """Tests for authentication and backup errors."""

    def test_authentication_error(self) -> None:
        """Authentication errors default to a tag-mismatch message."""
        err = AuthenticationError(path="app.xdb")
        assert err.code == ERROR_AUTHENTICATION
        assert "authentication" in err.message
        assert err.context["path"] == "app.xdb"

    def test_archive_error(self) -> None:
        """Archive errors are backup errors."""
        err = BackupArchiveError(backup_id="backup_1_abcd")
        assert err.code == ERROR_BACKUP_ARCHIVE
        assert isinstance(err, BackupError)
        assert err.context["backup_id"] == "backup_1_abcd"
