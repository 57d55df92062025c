"""
Unit tests for schema models.

Tests cover:
- Column and Table validation
- camelCase aliases on persisted models
- Blob values in rows and defaults
- Backup bookkeeping models
"""

import pytest
from pydantic import ValidationError

from xdb.schema import (
    BackupManifest,
    BackupRecord,
    BackupStatus,
    Column,
    ColumnType,
    Database,
    QueryResult,
    RegistryDocument,
    Table,
)


class TestColumn:
    """Tests for Column."""

    def test_minimal(self) -> None:
        """Only name and type are required."""
        column = Column(name="id", type="INTEGER")
        assert column.type == ColumnType.INTEGER
        assert not column.primary_key
        assert not column.not_null
        assert column.default is None

    def test_unknown_type(self) -> None:
        """Types outside the four kinds are rejected."""
        with pytest.raises(ValidationError):
            Column(name="x", type="JSON")

    def test_frozen(self) -> None:
        """Columns cannot be changed after creation."""
        column = Column(name="id", type="INTEGER")
        with pytest.raises(ValidationError):
            column.name = "other"

    def test_aliases(self) -> None:
        """Persisted form uses camelCase."""
        column = Column(name="id", type="INTEGER", primary_key=True, not_null=True)
        dumped = column.model_dump(mode="json", by_alias=True)
        assert dumped["primaryKey"] is True
        assert dumped["notNull"] is True
        assert Column.model_validate(dumped) == column

    def test_blob_default(self) -> None:
        """Blob defaults survive JSON."""
        column = Column(name="b", type="BLOB", default=b"\x01")
        restored = Column.model_validate_json(column.model_dump_json(by_alias=True))
        assert restored.default == b"\x01"


class TestTable:
    """Tests for Table."""

    def test_rows_stored_as_data(self) -> None:
        """Rows serialize under `data`."""
        table = Table(
            name="t",
            columns=[Column(name="id", type="INTEGER", primary_key=True)],
            primary_key=["id"],
            rows=[{"id": 1}],
        )
        dumped = table.model_dump(mode="json", by_alias=True)
        assert dumped["data"] == [{"id": 1}]
        assert "rows" not in dumped

    def test_blob_rows(self) -> None:
        """Bytes in rows are wrapped for JSON and unwrapped on load."""
        table = Table(name="t", rows=[{"b": b"\xde\xad", "n": None}])
        dumped = table.model_dump(mode="json", by_alias=True)
        assert dumped["data"][0]["b"] == {"$blob": "3q0="}
        restored = Table.model_validate(dumped)
        assert restored.rows == [{"b": b"\xde\xad", "n": None}]

    def test_python_dump_keeps_bytes(self) -> None:
        """Python-mode dumps keep raw bytes."""
        table = Table(name="t", rows=[{"b": b"\x00"}])
        assert table.model_dump()["rows"] == [{"b": b"\x00"}]

    def test_column_helpers(self) -> None:
        """Lookup helpers follow declaration order."""
        table = Table(
            name="t",
            columns=[
                Column(name="a", type="INTEGER", primary_key=True),
                Column(name="b", type="TEXT"),
            ],
        )
        assert table.column_names() == ["a", "b"]
        assert table.get_column("b").type == ColumnType.TEXT
        assert table.get_column("c") is None
        assert [c.name for c in table.primary_key_columns()] == ["a"]


class TestDatabase:
    """Tests for Database."""

    def test_touch_advances_last_modified(self) -> None:
        """touch() updates last_modified only."""
        database = Database(name="app")
        created = database.metadata.created_at
        before = database.metadata.last_modified
        database.touch()
        assert database.metadata.last_modified >= before
        assert database.metadata.created_at == created

    def test_metadata_aliases(self) -> None:
        """Timestamps use camelCase on disk."""
        dumped = Database(name="app").model_dump(mode="json", by_alias=True)
        assert set(dumped["metadata"]) == {"createdAt", "lastModified"}


class TestQueryResult:
    """Tests for QueryResult."""

    def test_read_result(self) -> None:
        """Reads carry rows only."""
        result = QueryResult(rows=[{"a": 1}])
        assert result.rows_affected is None
        assert result.insert_id is None

    def test_negative_rows_affected(self) -> None:
        """rows_affected cannot be negative."""
        with pytest.raises(ValidationError):
            QueryResult(rows_affected=-1)


class TestBackupModels:
    """Tests for backup bookkeeping models."""

    def test_manifest_aliases(self) -> None:
        """Manifest keys are camelCase and unknown keys are ignored."""
        manifest = BackupManifest.model_validate(
            {
                "backupId": "backup_1_abcd",
                "createdAt": "2024-01-01T00:00:00Z",
                "version": "1.0.0",
                "files": [{"name": "app.xdb", "hash": "00", "size": 1}],
                "totalFiles": 1,
                "totalSize": 1,
                "extra": True,
            }
        )
        assert manifest.backup_id == "backup_1_abcd"
        assert manifest.files[0].name == "app.xdb"

    def test_record_defaults(self) -> None:
        """Records default to success."""
        record = BackupRecord(backup_id="backup_1_abcd", password="x")
        assert record.status == BackupStatus.SUCCESS
        assert record.failure_log is None

    def test_registry_document(self) -> None:
        """Registry documents round-trip through their aliases."""
        document = RegistryDocument(
            backups=[BackupRecord(backup_id="backup_1_abcd", password="x")],
            last_backup_id="backup_1_abcd",
        )
        dumped = document.model_dump(mode="json", by_alias=True)
        assert dumped["lastBackupId"] == "backup_1_abcd"
        assert dumped["maxBackups"] == 5
        assert RegistryDocument.model_validate(dumped) == document
