"""
System Registry for XDB.

The registry is an encrypted file (`system.xdbCore`) in the data
directory that records every backup, with its one-time password, and
every restoration attempt.

On-disk wrapper:
    {"format": "xdbCore_encrypted_v1", "version": "1.0.0",
     "encrypted": <hex>, "nonce": <hex>, "tag": <hex>, "salt": <hex>}

Decrypted document:
    {"format": "xdbCore_v1", "backups": [...], "restorations": [...],
     "maxBackups": 5, "lastBackupId": ..., "lastRestorationId": ...}

The registry never holds more than `max_backups` backup records; adding
one past the limit evicts the oldest.
"""

import logging
import secrets
import threading
import time
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from xdb.crypto import Cipher
from xdb.errors import (
    AuthenticationError,
    RegistryCorruptedError,
    StorageReadError,
    StorageWriteError,
    WriteInProgressError,
)
from xdb.schema import (
    BackupRecord,
    BackupStatus,
    EncryptedPayload,
    RegistryDocument,
    RestorationRecord,
)
from xdb.store.file import atomic_write_bytes

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "system.xdbCore"
WRAPPER_FORMAT = "xdbCore_encrypted_v1"
DOCUMENT_FORMAT = "xdbCore_v1"
REGISTRY_VERSION = "1.0.0"
DEFAULT_MAX_BACKUPS = 5


class RegistryWrapper(BaseModel):
    """Encrypted envelope written to `system.xdbCore`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    format: str = Field(...)
    version: str = Field(default=REGISTRY_VERSION)
    encrypted: str = Field(...)
    nonce: str = Field(...)
    tag: str = Field(...)
    salt: str = Field(...)


def generate_restoration_id() -> str:
    return f"restore_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class SystemRegistry:
    """
    Encrypted record of backups and restorations.

    Usage:
        registry = SystemRegistry(data_dir, cipher, max_backups=5)
        registry.initialize()
        evicted = registry.add_backup(record)
    """

    def __init__(
        self,
        data_dir: str | Path,
        cipher: Cipher,
        max_backups: int = DEFAULT_MAX_BACKUPS,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / REGISTRY_FILENAME
        self.cipher = cipher
        self.max_backups = max_backups
        self._write_lock = threading.Lock()

    def initialize(self) -> None:
        """Write an empty registry if none exists."""
        if not self.path.exists():
            self.save(RegistryDocument(format=DOCUMENT_FORMAT, max_backups=self.max_backups))
            logger.info("Initialized system registry at %s", self.path)

    def load(self) -> RegistryDocument:
        """
        Read and decrypt the registry.

        Returns:
            The registry document (empty if the file does not exist)

        Raises:
            RegistryCorruptedError: If the wrapper or document has the wrong layout
            AuthenticationError: If the registry fails to decrypt
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return RegistryDocument(format=DOCUMENT_FORMAT, max_backups=self.max_backups)
        except OSError as e:
            raise StorageReadError(
                operation="read",
                path=str(self.path),
                underlying_error=str(e),
            ) from e

        try:
            wrapper = RegistryWrapper.model_validate_json(raw)
        except ValidationError as e:
            raise RegistryCorruptedError(operation="read", path=str(self.path)) from e
        if wrapper.format != WRAPPER_FORMAT:
            raise RegistryCorruptedError(
                message=f"Unknown registry format: {wrapper.format}",
                operation="read",
                path=str(self.path),
            )

        payload = EncryptedPayload(
            ciphertext=wrapper.encrypted,
            nonce=wrapper.nonce,
            tag=wrapper.tag,
            salt=wrapper.salt,
        )
        try:
            plaintext = self.cipher.decrypt(payload)
        except AuthenticationError as e:
            raise AuthenticationError(path=str(self.path)) from e
        except StorageReadError as e:
            raise RegistryCorruptedError(operation="read", path=str(self.path)) from e

        try:
            document = RegistryDocument.model_validate_json(plaintext)
        except ValidationError as e:
            raise RegistryCorruptedError(operation="read", path=str(self.path)) from e
        if document.format != DOCUMENT_FORMAT:
            raise RegistryCorruptedError(
                message=f"Unknown registry document format: {document.format}",
                operation="read",
                path=str(self.path),
            )

        # The configured limit wins over whatever was stored.
        document.max_backups = self.max_backups
        return document

    def save(self, document: RegistryDocument) -> None:
        """Encrypt and atomically write the registry."""
        if not self._write_lock.acquire(blocking=False):
            raise WriteInProgressError(operation="write", path=str(self.path))
        try:
            payload = self.cipher.encrypt(document.model_dump_json(by_alias=True))
            wrapper = RegistryWrapper(
                format=WRAPPER_FORMAT,
                version=REGISTRY_VERSION,
                encrypted=payload.ciphertext,
                nonce=payload.nonce,
                tag=payload.tag,
                salt=payload.salt,
            )
            atomic_write_bytes(self.path, wrapper.model_dump_json().encode("utf-8"))
        except OSError as e:
            raise StorageWriteError(
                operation="write",
                path=str(self.path),
                underlying_error=str(e),
            ) from e
        finally:
            self._write_lock.release()

    # =========================================================================
    # Backups
    # =========================================================================

    def add_backup(self, record: BackupRecord) -> list[BackupRecord]:
        """
        Register a backup, evicting the oldest while over the limit.

        Returns:
            The evicted records, oldest first
        """
        document = self.load()
        document.backups.append(record)
        document.last_backup_id = record.backup_id

        evicted: list[BackupRecord] = []
        while len(document.backups) > document.max_backups:
            evicted.append(document.backups.pop(0))

        self.save(document)
        for old in evicted:
            logger.info("Evicted backup %s from registry", old.backup_id)
        return evicted

    def get_backup(self, backup_id: str) -> BackupRecord | None:
        for record in self.load().backups:
            if record.backup_id == backup_id:
                return record
        return None

    def list_backups(self) -> list[BackupRecord]:
        return list(self.load().backups)

    def remove_backup(self, backup_id: str) -> bool:
        """Remove a backup record. Returns False if it was not registered."""
        document = self.load()
        remaining = [r for r in document.backups if r.backup_id != backup_id]
        if len(remaining) == len(document.backups):
            return False
        document.backups = remaining
        if document.last_backup_id == backup_id:
            document.last_backup_id = remaining[-1].backup_id if remaining else None
        self.save(document)
        return True

    # =========================================================================
    # Restorations
    # =========================================================================

    def record_restoration(
        self,
        backup_id: str,
        status: BackupStatus,
        failure_log: str | None = None,
    ) -> RestorationRecord:
        document = self.load()
        record = RestorationRecord(
            restoration_id=generate_restoration_id(),
            backup_id=backup_id,
            status=status,
            failure_log=failure_log,
        )
        document.restorations.append(record)
        document.last_restoration_id = record.restoration_id
        self.save(document)
        return record

    def list_restorations(self) -> list[RestorationRecord]:
        return list(self.load().restorations)

    def export_raw(self) -> bytes:
        """The registry file exactly as stored (still encrypted)."""
        self.initialize()
        return self.path.read_bytes()
