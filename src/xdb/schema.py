"""
Schema definitions for XDB.

This module defines the Pydantic models used throughout XDB:
- Database/Table/Column/Index: The in-memory and on-disk database layout
- QueryResult: What a statement returns
- EncryptedPayload: The on-disk unit produced by the cipher
- BackupManifest/BackupRecord/RestorationRecord/RegistryDocument: Backup bookkeeping
- BackupResult/RestorationReport: What backup and restore calls return

Design Decisions:
    - Persisted models serialize with camelCase aliases so files stay
      compatible with existing XDB data directories
    - Row values are a closed variant (int, float, str, bytes, bool, None);
      bytes are wrapped in a marker object when written as JSON
    - Schema-level models are frozen; tables and databases are mutated
      in place by the execution runner
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    FieldSerializationInfo,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from xdb.values import Row, decode_value, encode_value


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Enums
# =============================================================================


class ColumnType(str, Enum):
    """Declared type of a column."""

    INTEGER = "INTEGER"
    REAL = "REAL"
    TEXT = "TEXT"
    BLOB = "BLOB"


class BackupStatus(str, Enum):
    """Outcome of a backup or restoration."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


# =============================================================================
# Database Models
# =============================================================================


class Column(BaseModel):
    """
    A column definition.

    Attributes:
        name: Column name, unique within its table
        type: Declared type used for value coercion
        primary_key: Whether the column is part of the primary key
        not_null: Whether null values are rejected
        default: Value used when an INSERT omits the column
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    name: str = Field(..., min_length=1, description="Column name")
    type: ColumnType = Field(..., description="Declared column type")
    primary_key: bool = Field(default=False, description="Part of the primary key")
    not_null: bool = Field(default=False, description="Rejects null values")
    default: Any = Field(default=None, description="Default value for INSERT")

    @field_validator("default", mode="before")
    @classmethod
    def decode_default(cls, v: Any) -> Any:
        """Unwrap blob markers read from JSON."""
        return decode_value(v)

    @field_serializer("default")
    def encode_default(self, v: Any, info: FieldSerializationInfo) -> Any:
        """Wrap bytes so they survive JSON."""
        return encode_value(v) if info.mode_is_json() else v


class Index(BaseModel):
    """An index descriptor. Recorded as metadata, never used for lookups."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    name: str = Field(..., min_length=1)
    table_name: str = Field(...)
    columns: list[str] = Field(..., min_length=1)
    unique: bool = Field(default=False)


class Table(BaseModel):
    """
    A table: its schema plus its rows.

    Attributes:
        name: Table name, unique within its database
        columns: Ordered column definitions
        indexes: Recorded index descriptors
        primary_key: Names of the primary key columns (empty if none)
        rows: Ordered rows, each a mapping of column name to value
    """

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    name: str = Field(..., min_length=1)
    columns: list[Column] = Field(default_factory=list)
    indexes: list[Index] = Field(default_factory=list)
    primary_key: list[str] = Field(default_factory=list)
    rows: list[Row] = Field(default_factory=list, alias="data")

    @field_validator("rows", mode="before")
    @classmethod
    def decode_rows(cls, v: Any) -> Any:
        """Unwrap blob markers read from JSON."""
        if not isinstance(v, list):
            return v
        return [
            {k: decode_value(val) for k, val in row.items()} if isinstance(row, dict) else row
            for row in v
        ]

    @field_serializer("rows")
    def encode_rows(self, v: list[Row], info: FieldSerializationInfo) -> list[Row]:
        """Wrap bytes so they survive JSON."""
        if not info.mode_is_json():
            return [dict(row) for row in v]
        return [{k: encode_value(val) for k, val in row.items()} for row in v]

    def get_column(self, name: str) -> Column | None:
        """Look up a column by name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def column_names(self) -> list[str]:
        """Column names in declaration order."""
        return [c.name for c in self.columns]

    def primary_key_columns(self) -> list[Column]:
        """Columns flagged as part of the primary key."""
        return [c for c in self.columns if c.primary_key]


class DatabaseMetadata(BaseModel):
    """Creation and modification timestamps of a database."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    created_at: datetime = Field(default_factory=_utcnow)
    last_modified: datetime = Field(default_factory=_utcnow)


class Database(BaseModel):
    """
    A named database.

    Attributes:
        name: Database name, immutable after creation
        tables: Mapping of table name to Table
        metadata: Creation and modification timestamps
    """

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    name: str = Field(..., min_length=1)
    tables: dict[str, Table] = Field(default_factory=dict)
    metadata: DatabaseMetadata = Field(default_factory=DatabaseMetadata)

    def touch(self) -> None:
        """Mark the database as modified now."""
        self.metadata.last_modified = _utcnow()


# =============================================================================
# Runtime Models
# =============================================================================


class QueryResult(BaseModel):
    """
    The outcome of a statement.

    Reads fill `rows`; writes fill `rows_affected` and, for tables with a
    single INTEGER primary key, `insert_id`.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rows: list[Row] | None = Field(default=None, description="Projected rows")
    rows_affected: int | None = Field(default=None, ge=0, description="Rows changed")
    insert_id: int | None = Field(default=None, description="Primary key of inserted row")


class EncryptedPayload(BaseModel):
    """
    Ciphertext wrapper written to disk. All fields are hex strings.

    The tag is kept apart from the ciphertext so the on-disk layout
    names every component explicitly.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ciphertext: str = Field(..., description="Hex ciphertext")
    nonce: str = Field(..., min_length=1, description="Hex GCM nonce")
    tag: str = Field(..., min_length=1, description="Hex GCM authentication tag")
    salt: str = Field(..., min_length=1, description="Hex key-derivation salt")


# =============================================================================
# Backup Models
# =============================================================================


class ManifestEntry(BaseModel):
    """One archived database file."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1)
    hash: str = Field(..., description="SHA-256 hex digest")
    size: int = Field(..., ge=0)


class BackupManifest(BaseModel):
    """
    The manifest stored inside every backup archive.

    Attributes:
        backup_id: ID of the backup
        created_at: When the backup was taken
        version: Archive format version
        files: Archived database files with hashes and sizes
        total_files: Number of archived files
        total_size: Sum of archived file sizes in bytes
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    backup_id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)
    version: str = Field(default="1.0.0")
    files: list[ManifestEntry] = Field(default_factory=list)
    total_files: int = Field(default=0, ge=0)
    total_size: int = Field(default=0, ge=0)


class BackupRecord(BaseModel):
    """
    A backup entry in the system registry.

    The registry is the only place the one-time password is kept.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    backup_id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)
    password: str = Field(...)
    file_count: int = Field(default=0, ge=0)
    total_size: int = Field(default=0, ge=0)
    checksums: dict[str, str] = Field(default_factory=dict)
    version: str = Field(default="1.0.0")
    status: BackupStatus = Field(default=BackupStatus.SUCCESS)
    failure_log: str | None = Field(default=None)


class RestorationRecord(BaseModel):
    """A restoration attempt in the system registry."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    restoration_id: str = Field(..., min_length=1)
    backup_id: str = Field(default="")
    restored_at: datetime = Field(default_factory=_utcnow)
    status: BackupStatus = Field(...)
    failure_log: str | None = Field(default=None)


class RegistryDocument(BaseModel):
    """Decrypted contents of the system registry file."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    format: str = Field(default="xdbCore_v1")
    backups: list[BackupRecord] = Field(default_factory=list)
    restorations: list[RestorationRecord] = Field(default_factory=list)
    max_backups: int = Field(default=5, gt=0)
    last_backup_id: str | None = Field(default=None)
    last_restoration_id: str | None = Field(default=None)


class RestorationFailure(BaseModel):
    """A file that could not be restored, and why."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    filename: str
    reason: str


class RestorationReport(BaseModel):
    """Summary returned by a restore."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_id: str = Field(default="")
    status: BackupStatus
    message: str
    restored_count: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)
    failures: list[RestorationFailure] = Field(default_factory=list)
    restored_files: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)


class BackupResult(BaseModel):
    """Summary returned by a backup."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_id: str
    password: str
    created_at: datetime
    file_count: int = Field(ge=0)
    total_size: int = Field(ge=0)
    archive_path: str
    evicted: list[str] = Field(default_factory=list)
