"""
Backup module for XDB.

Snapshots every database file into an integrity-checked zip archive and
restores them, file by file, from such an archive.

Components:
    - BackupManager: Creates, lists, downloads and restores backups
    - SystemRegistry: Encrypted record of backups (with their one-time
      passwords) and restoration attempts

Retention:
    The registry keeps at most `max_backups` records. Registering one
    more evicts the oldest record and deletes its archive.
"""

from xdb.backup.manager import (
    MANIFEST_NAME,
    BackupManager,
    generate_backup_id,
    generate_password,
)
from xdb.backup.registry import REGISTRY_FILENAME, SystemRegistry

__all__ = [
    "MANIFEST_NAME",
    "REGISTRY_FILENAME",
    "BackupManager",
    "SystemRegistry",
    "generate_backup_id",
    "generate_password",
]
