"""
Backup Manager for XDB.

A backup is a zip archive of every `<name>.xdb` file in the data
directory plus a manifest, `BACKUP_MANIFEST.json`, listing each file's
SHA-256 and size. Archives live in `<data_dir>/.backups/<id>.zip`.

Database files are already encrypted, so archives are not encrypted
again. Each backup gets a one-time password, kept only in the system
registry, that a caller must present to download the archive.

Restore Flow:
    1. Extract the archive into a scratch directory inside the data dir
    2. Read the manifest (an unusable archive fails the whole restore)
    3. For each listed file: check presence, check the hash, then
       atomically copy it into the data directory
    4. Record the outcome in the registry and return a report

A file that fails is reported and skipped; the rest still restore.
"""

import hmac
import io
import logging
import re
import secrets
import string
import tempfile
import time
import zlib
from pathlib import Path
from zipfile import ZIP_DEFLATED, BadZipFile, ZipFile, ZipInfo

from pydantic import ValidationError

from xdb.backup.registry import SystemRegistry
from xdb.errors import AuthenticationError, BackupArchiveError, BackupError, NotFoundError
from xdb.schema import (
    BackupManifest,
    BackupRecord,
    BackupResult,
    BackupStatus,
    ManifestEntry,
    RestorationFailure,
    RestorationRecord,
    RestorationReport,
)
from xdb.store.file import atomic_write_bytes, compute_hash, now_utc
from xdb.store.persistence import DATABASE_SUFFIX

logger = logging.getLogger(__name__)

MANIFEST_NAME = "BACKUP_MANIFEST.json"
BACKUP_VERSION = "1.0.0"
BACKUPS_DIRNAME = ".backups"
PASSWORD_LENGTH = 32

REASON_NOT_FOUND = "not found in archive"
REASON_CHECKSUM = "checksum mismatch"
REASON_INVALID_NAME = "invalid file name"

_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)  # keep zip entry timestamps stable
_FILE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+\.xdb$")
_PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_backup_id() -> str:
    """`backup_<epoch ms>_<8 hex>`"""
    return f"backup_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Random alphanumeric password with at least one upper, lower and digit."""
    while True:
        password = "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))
        if (
            any(c.islower() for c in password)
            and any(c.isupper() for c in password)
            and any(c.isdigit() for c in password)
        ):
            return password


def _zip_write_bytes(zf: ZipFile, arcname: str, data: bytes) -> None:
    info = ZipInfo(arcname)
    info.date_time = _ZIP_EPOCH
    info.compress_type = ZIP_DEFLATED
    zf.writestr(info, data)


class BackupManager:
    """
    Creates, lists and restores backups of a data directory.

    Usage:
        manager = BackupManager(data_dir, registry)
        result = manager.create_backup()
        report = manager.restore_backup(archive_bytes)
    """

    def __init__(self, data_dir: str | Path, registry: SystemRegistry) -> None:
        self.data_dir = Path(data_dir)
        self.registry = registry
        self.backups_dir = self.data_dir / BACKUPS_DIRNAME

    def archive_path(self, backup_id: str) -> Path:
        return self.backups_dir / f"{backup_id}.zip"

    def _database_files(self) -> list[Path]:
        if not self.data_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.data_dir.glob(f"*{DATABASE_SUFFIX}")
            if path.is_file() and not path.name.startswith(".")
        )

    # =========================================================================
    # Create
    # =========================================================================

    def create_backup(self) -> BackupResult:
        """
        Archive every database file and register the backup.

        Raises:
            BackupError: If a file cannot be read or the archive cannot be written
        """
        backup_id = generate_backup_id()
        password = generate_password()
        created_at = now_utc()

        entries: list[ManifestEntry] = []
        buffer = io.BytesIO()
        try:
            with ZipFile(buffer, "w") as zf:
                for path in self._database_files():
                    content = path.read_bytes()
                    entries.append(
                        ManifestEntry(name=path.name, hash=compute_hash(content), size=len(content))
                    )
                    _zip_write_bytes(zf, path.name, content)

                manifest = BackupManifest(
                    backup_id=backup_id,
                    created_at=created_at,
                    version=BACKUP_VERSION,
                    files=entries,
                    total_files=len(entries),
                    total_size=sum(e.size for e in entries),
                )
                _zip_write_bytes(
                    zf, MANIFEST_NAME, manifest.model_dump_json(by_alias=True, indent=2).encode("utf-8")
                )

            archive_path = self.archive_path(backup_id)
            atomic_write_bytes(archive_path, buffer.getvalue())
        except OSError as e:
            raise BackupError(
                message=f"Failed to create backup: {e}",
                backup_id=backup_id,
            ) from e

        record = BackupRecord(
            backup_id=backup_id,
            created_at=created_at,
            modified_at=created_at,
            password=password,
            file_count=manifest.total_files,
            total_size=manifest.total_size,
            checksums={e.name: e.hash for e in entries},
            version=BACKUP_VERSION,
            status=BackupStatus.SUCCESS,
        )
        evicted = self.registry.add_backup(record)
        for old in evicted:
            self.archive_path(old.backup_id).unlink(missing_ok=True)

        logger.info(
            "Created backup %s (%d files, %d bytes)",
            backup_id,
            manifest.total_files,
            manifest.total_size,
        )
        return BackupResult(
            backup_id=backup_id,
            password=password,
            created_at=created_at,
            file_count=manifest.total_files,
            total_size=manifest.total_size,
            archive_path=str(archive_path),
            evicted=[old.backup_id for old in evicted],
        )

    # =========================================================================
    # Query
    # =========================================================================

    def list_backups(self) -> list[BackupRecord]:
        return self.registry.list_backups()

    def get_backup(self, backup_id: str) -> BackupRecord:
        record = self.registry.get_backup(backup_id)
        if record is None:
            raise NotFoundError(kind="backup", name=backup_id)
        return record

    def get_backup_password(self, backup_id: str) -> str:
        return self.get_backup(backup_id).password

    def get_backup_archive(self, backup_id: str, password: str) -> bytes:
        """
        Return an archive's bytes if `password` matches its registered password.

        Raises:
            NotFoundError: If the backup or its archive does not exist
            AuthenticationError: If the password is wrong
        """
        record = self.get_backup(backup_id)
        if not hmac.compare_digest(record.password.encode("utf-8"), password.encode("utf-8")):
            raise AuthenticationError(
                message="Invalid backup password",
                suggestion="Use the password returned when the backup was created",
            )
        try:
            return self.archive_path(backup_id).read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(kind="backup archive", name=backup_id) from e

    def delete_backup(self, backup_id: str) -> None:
        if not self.registry.remove_backup(backup_id):
            raise NotFoundError(kind="backup", name=backup_id)
        self.archive_path(backup_id).unlink(missing_ok=True)
        logger.info("Deleted backup %s", backup_id)

    def list_restorations(self) -> list[RestorationRecord]:
        return self.registry.list_restorations()

    # =========================================================================
    # Restore
    # =========================================================================

    def restore_backup(self, archive: bytes | str | Path) -> RestorationReport:
        """
        Restore database files from a backup archive.

        Args:
            archive: Archive bytes, or a path to an archive file

        Returns:
            Report with per-file failures and an overall status

        Raises:
            BackupArchiveError: If the archive or its manifest cannot be read
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(dir=self.data_dir, prefix=".restore_") as scratch_dir:
            scratch = Path(scratch_dir)
            manifest, unreadable = self._extract(archive, scratch)

            failures: list[RestorationFailure] = []
            restored: list[str] = []
            for entry in manifest.files:
                reason = self._restore_file(entry, scratch, unreadable)
                if reason is None:
                    restored.append(entry.name)
                else:
                    logger.warning("Could not restore %s: %s", entry.name, reason)
                    failures.append(RestorationFailure(filename=entry.name, reason=reason))

        total = len(manifest.files)
        if not failures:
            status = BackupStatus.SUCCESS
            message = f"Restored {len(restored)} of {total} files"
        elif restored:
            status = BackupStatus.PARTIAL
            message = f"Restored {len(restored)} of {total} files; {len(failures)} failed"
        else:
            status = BackupStatus.FAILED
            message = f"No files restored; {len(failures)} failed"

        failure_log = "; ".join(f"{f.filename}: {f.reason}" for f in failures) or None
        self.registry.record_restoration(manifest.backup_id, status, failure_log)
        logger.info("Restoration of %s finished: %s", manifest.backup_id, message)

        return RestorationReport(
            backup_id=manifest.backup_id,
            status=status,
            message=message,
            restored_count=len(restored),
            failed_count=len(failures),
            total_count=total,
            failures=failures,
            restored_files=restored,
        )

    def _extract(self, archive: bytes | str | Path, scratch: Path) -> tuple[BackupManifest, set[str]]:
        """Unpack the manifest and listed files into `scratch`."""
        unreadable: set[str] = set()
        try:
            data = archive if isinstance(archive, bytes) else Path(archive).read_bytes()
            with ZipFile(io.BytesIO(data)) as zf:
                manifest = BackupManifest.model_validate_json(zf.read(MANIFEST_NAME))
                members = set(zf.namelist())
                for entry in manifest.files:
                    if entry.name not in members or not _FILE_NAME_RE.match(entry.name):
                        continue
                    try:
                        content = zf.read(entry.name)
                    except (BadZipFile, zlib.error):
                        unreadable.add(entry.name)
                        continue
                    (scratch / entry.name).write_bytes(content)
        except (BadZipFile, KeyError, ValidationError, OSError, zlib.error) as e:
            self.registry.record_restoration("", BackupStatus.FAILED, f"invalid archive: {e}")
            logger.warning("Restore failed: invalid archive: %s", e)
            raise BackupArchiveError(message=f"Invalid backup archive: {e}") from e
        return manifest, unreadable

    def _restore_file(self, entry: ManifestEntry, scratch: Path, unreadable: set[str]) -> str | None:
        """Restore one file. Returns a failure reason, or None on success."""
        if not _FILE_NAME_RE.match(entry.name):
            return REASON_INVALID_NAME
        if entry.name in unreadable:
            return REASON_CHECKSUM

        source = scratch / entry.name
        if not source.is_file():
            return REASON_NOT_FOUND

        content = source.read_bytes()
        if compute_hash(content) != entry.hash:
            return REASON_CHECKSUM

        try:
            atomic_write_bytes(self.data_dir / entry.name, content)
        except OSError as e:
            return f"write failed: {e}"
        return None
