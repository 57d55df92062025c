"""
Persistence Coordinator for XDB.

Moves databases between the Statement Engine and the data directory.

Data directory layout:
    <data_dir>/<name>.xdb       One encrypted file per database
    <data_dir>/system.xdbCore   Encrypted system registry
    <data_dir>/.backups/        Backup archives

Each database file decrypts to `{"<name>": <database>}`.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from xdb.crypto import Cipher
from xdb.engine import StatementEngine, validate_database_name
from xdb.errors import (
    NotFoundError,
    SizeLimitExceededError,
    StorageReadError,
    StorageWriteError,
)
from xdb.schema import Database
from xdb.store.file import XdbFile

logger = logging.getLogger(__name__)

DATABASE_SUFFIX = ".xdb"
DEFAULT_MAX_DATABASE_SIZE = 100 * 1024 * 1024


class DatabasePersistence:
    """
    Loads and saves engine databases as encrypted files.

    Usage:
        persistence = DatabasePersistence(engine, data_dir, cipher)
        persistence.initialize()
        persistence.load_database("app")
        persistence.save_database("app")
    """

    def __init__(
        self,
        engine: StatementEngine,
        data_dir: str | Path,
        cipher: Cipher,
        max_database_size: int = DEFAULT_MAX_DATABASE_SIZE,
    ) -> None:
        self.engine = engine
        self.data_dir = Path(data_dir)
        self.cipher = cipher
        self.max_database_size = max_database_size
        self._files: dict[str, XdbFile] = {}

    def initialize(self) -> None:
        """Create the data directory if needed."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageWriteError(
                operation="initialize",
                path=str(self.data_dir),
                underlying_error=str(e),
            ) from e

    def database_path(self, name: str) -> Path:
        validate_database_name(name)
        return self.data_dir / f"{name}{DATABASE_SUFFIX}"

    def file_for(self, name: str) -> XdbFile:
        """The XdbFile for a database, one per name so the write guard is shared."""
        xdb_file = self._files.get(name)
        if xdb_file is None:
            xdb_file = XdbFile(self.database_path(name), self.cipher)
            self._files[name] = xdb_file
        return xdb_file

    def close(self) -> None:
        """Forget every cached XdbFile."""
        self._files.clear()

    # =========================================================================
    # Load / save
    # =========================================================================

    def _read_database(self, name: str) -> Database | None:
        xdb_file = self.file_for(name)
        if not xdb_file.exists():
            return None

        text = xdb_file.read()
        try:
            document = json.loads(text)
            content = document[name]
            return Database.model_validate(content)
        except (json.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            raise StorageReadError(
                operation="load",
                path=str(xdb_file.path),
                underlying_error=f"file does not contain database '{name}'",
            ) from e

    def load_database(self, name: str) -> bool:
        """
        Load a database from disk into the engine.

        Returns:
            True if loaded, False if there is no file for it

        Raises:
            StorageReadError: If the file is unreadable or lacks the database
            AuthenticationError: If the file fails to decrypt
        """
        database = self._read_database(name)
        if database is None:
            return False
        self.engine.load(database)
        logger.info("Loaded database %s", name)
        return True

    def save_database(self, name: str) -> None:
        """
        Write a resident database to disk.

        Raises:
            NotFoundError: If the database is not resident
            SizeLimitExceededError: If the serialized form is too large;
                the file is left unchanged
            StorageWriteError: If the write fails
        """
        plaintext = json.dumps(self.engine.export(name))
        size = len(plaintext.encode("utf-8"))
        if size > self.max_database_size:
            raise SizeLimitExceededError(
                operation="save",
                path=str(self.database_path(name)),
                actual_size=size,
                max_size=self.max_database_size,
            )
        self.file_for(name).write(plaintext)
        logger.info("Saved database %s (%d bytes)", name, size)

    def delete_database(self, name: str) -> None:
        """Remove a database file. An absent file is not an error."""
        self.file_for(name).delete()
        self._files.pop(name, None)
        logger.info("Deleted database file %s", name)

    # =========================================================================
    # Inspection
    # =========================================================================

    def list_databases_on_disk(self) -> list[str]:
        """Names of all database files, skipping hidden and temporary files."""
        if not self.data_dir.is_dir():
            return []
        return sorted(
            path.stem
            for path in self.data_dir.glob(f"*{DATABASE_SUFFIX}")
            if path.is_file() and not path.name.startswith(".")
        )

    def database_exists_on_disk(self, name: str) -> bool:
        return self.file_for(name).exists()

    def get_database_file_size(self, name: str) -> int:
        return self.file_for(name).size()

    # =========================================================================
    # Copy / export / import
    # =========================================================================

    def backup_database(self, name: str, destination: str | Path) -> Path:
        """Copy a database's encrypted file to `destination`."""
        return self.file_for(name).copy_to(destination)

    def export_database(self, name: str) -> str:
        """Decrypted JSON of a database file."""
        xdb_file = self.file_for(name)
        if not xdb_file.exists():
            raise NotFoundError(kind="database", name=name)
        return xdb_file.read()

    def import_database(self, name: str, document: str) -> None:
        """
        Validate a JSON document, write it as `name` and load it.

        Raises:
            StorageReadError: If the document does not contain a valid database `name`
        """
        try:
            parsed = json.loads(document)
            database = Database.model_validate(parsed[name])
        except (json.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            raise StorageReadError(
                operation="import",
                underlying_error=f"document does not contain a valid database '{name}'",
            ) from e
        if database.name != name:
            raise StorageReadError(
                operation="import",
                underlying_error=f"document names database '{database.name}', expected '{name}'",
            )
        self.engine.load(database)
        self.save_database(name)
