"""
Engine context for XDB.

XdbContext is the one object a host application builds. It wires the
Statement Engine, Persistence Coordinator, System Registry and Backup
Manager to one data directory and one secret, and exposes the boundary
calls the router and CLI use.

Execution Flow:
    1. Load the database from disk if it is not resident
    2. Parse and execute the statement in memory
    3. For mutating statements, write the database back to disk
    4. If that write fails, drop the resident copy so the next call
       reloads the last persisted state

Usage:
    settings = load_settings("xdb.yaml")
    with XdbContext(settings) as ctx:
        ctx.create_database("app")
        ctx.execute_statement("app", "CREATE TABLE t (id INTEGER PRIMARY KEY)")
"""

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from xdb.backup import BackupManager, SystemRegistry
from xdb.config import Settings, load_settings
from xdb.crypto import Cipher
from xdb.engine import StatementEngine, validate_database_name
from xdb.errors import ConflictError, NotFoundError, XdbError
from xdb.schema import (
    BackupRecord,
    BackupResult,
    Column,
    QueryResult,
    RestorationRecord,
    RestorationReport,
)
from xdb.sql import is_mutating, parse_statement
from xdb.store import DATABASE_SUFFIX, DatabasePersistence
from xdb.values import Row

logger = logging.getLogger(__name__)


class XdbContext:
    """
    Explicit handle over one XDB data directory.

    Attributes:
        settings: The settings this context was built from
        engine: In-memory databases and statement dispatch
        persistence: Encrypted database files
        registry: Encrypted backup and restoration records
        backups: Backup creation and restore
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.cipher = Cipher(settings.encryption_key, settings.kdf)
        self.engine = StatementEngine()
        self.persistence = DatabasePersistence(
            self.engine,
            settings.data_dir,
            self.cipher,
            max_database_size=settings.max_database_size,
        )
        self.registry = SystemRegistry(
            settings.data_dir,
            self.cipher,
            max_backups=settings.max_backups,
        )
        self.backups = BackupManager(settings.data_dir, self.registry)

    @classmethod
    def from_config(
        cls,
        path: Path | str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "XdbContext":
        """Build and initialize a context from a YAML file and the environment."""
        context = cls(load_settings(path, env))
        context.initialize()
        return context

    def initialize(self) -> None:
        """Create the data directory and the registry if missing."""
        self.persistence.initialize()
        self.registry.initialize()
        logger.debug("Initialized XDB data directory %s", self.settings.data_dir)

    def close(self) -> None:
        """
        Drop resident databases and cached file handles.

        Every write has already been persisted, so nothing is flushed. The
        context stays usable: the next call reloads from disk.
        """
        for name in self.engine.list_databases():
            self.engine.unload(name)
        self.persistence.close()
        logger.debug("Closed XDB context for %s", self.settings.data_dir)

    def __enter__(self) -> "XdbContext":
        self.initialize()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # =========================================================================
    # Internal
    # =========================================================================

    def _ensure_loaded(self, name: str) -> None:
        if self.engine.database_exists(name):
            return
        validate_database_name(name)
        if not self.persistence.load_database(name):
            raise NotFoundError(kind="database", name=name)

    def _persist(self, name: str) -> None:
        try:
            self.persistence.save_database(name)
        except XdbError:
            self.engine.unload(name)
            raise

    # =========================================================================
    # Databases
    # =========================================================================

    def create_database(self, name: str) -> None:
        validate_database_name(name)
        if self.engine.database_exists(name) or self.persistence.database_exists_on_disk(name):
            raise ConflictError(kind="database", name=name)
        self.engine.create_database(name)
        self._persist(name)

    def delete_database(self, name: str) -> None:
        validate_database_name(name)
        resident = self.engine.database_exists(name)
        if not resident and not self.persistence.database_exists_on_disk(name):
            raise NotFoundError(kind="database", name=name)
        self.engine.unload(name)
        self.persistence.delete_database(name)

    def load_database(self, name: str) -> bool:
        return self.persistence.load_database(name)

    def save_database(self, name: str) -> None:
        self._ensure_loaded(name)
        self._persist(name)

    def list_databases(self) -> list[str]:
        """Databases currently resident in memory."""
        return self.engine.list_databases()

    def list_databases_on_disk(self) -> list[str]:
        return self.persistence.list_databases_on_disk()

    def export_database(self, name: str) -> str:
        return self.persistence.export_database(name)

    def import_database(self, name: str, document: str) -> None:
        validate_database_name(name)
        try:
            self.persistence.import_database(name, document)
        except XdbError:
            self.engine.unload(name)
            raise

    # =========================================================================
    # Tables and statements
    # =========================================================================

    def execute_statement(self, db_name: str, sql: str) -> QueryResult:
        """
        Run one statement and persist the database if it changed.

        Raises:
            NotFoundError: If the database is neither resident nor on disk
            XdbError: Any parse, schema, constraint or storage error
        """
        self._ensure_loaded(db_name)
        statement = parse_statement(sql)
        result = self.engine.execute(self.engine.get_database(db_name), statement)
        if is_mutating(statement):
            self._persist(db_name)
        return result

    def create_table(self, db_name: str, create_sql: str) -> QueryResult:
        self._ensure_loaded(db_name)
        result = self.engine.create_table(db_name, create_sql)
        self._persist(db_name)
        return result

    def create_table_from_columns(
        self,
        db_name: str,
        table_name: str,
        columns: Iterable[Column | Mapping[str, Any]],
        if_not_exists: bool = False,
    ) -> QueryResult:
        self._ensure_loaded(db_name)
        result = self.engine.create_table_from_columns(
            db_name, table_name, columns, if_not_exists=if_not_exists
        )
        self._persist(db_name)
        return result

    def drop_table(self, db_name: str, table_name: str, if_exists: bool = False) -> QueryResult:
        self._ensure_loaded(db_name)
        result = self.engine.drop_table(db_name, table_name, if_exists=if_exists)
        self._persist(db_name)
        return result

    def insert_row(self, db_name: str, table_name: str, values: Mapping[str, Any]) -> QueryResult:
        self._ensure_loaded(db_name)
        result = self.engine.insert_row(db_name, table_name, values)
        self._persist(db_name)
        return result

    def list_tables(self, db_name: str) -> list[str]:
        self._ensure_loaded(db_name)
        return self.engine.list_tables(db_name)

    def get_table_schema(self, db_name: str, table_name: str) -> list[Column]:
        self._ensure_loaded(db_name)
        return self.engine.get_table_schema(db_name, table_name)

    def get_table_rows(self, db_name: str, table_name: str) -> list[Row]:
        self._ensure_loaded(db_name)
        return self.engine.get_table_rows(db_name, table_name)

    # =========================================================================
    # Backups
    # =========================================================================

    def create_backup(self) -> BackupResult:
        return self.backups.create_backup()

    def restore_backup(self, archive: bytes | str | Path) -> RestorationReport:
        """Restore from an archive and drop restored databases from memory."""
        report = self.backups.restore_backup(archive)
        for filename in report.restored_files:
            self.engine.unload(filename.removesuffix(DATABASE_SUFFIX))
        return report

    def list_backups(self) -> list[BackupRecord]:
        return self.backups.list_backups()

    def get_backup_archive(self, backup_id: str, password: str) -> bytes:
        return self.backups.get_backup_archive(backup_id, password)

    def delete_backup(self, backup_id: str) -> None:
        self.backups.delete_backup(backup_id)

    def list_restorations(self) -> list[RestorationRecord]:
        return self.backups.list_restorations()

    def export_registry(self) -> bytes:
        """The registry file as stored, still encrypted."""
        return self.registry.export_raw()
