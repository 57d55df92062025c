"""
Storage module for XDB.

This module provides encrypted, single-file persistence for databases.

Components:
    - XdbFile: One encrypted file, replaced atomically on every write
    - DatabasePersistence: Loads and saves engine databases by name

Design principles:
    - Atomic: Temp file + fsync + replace; a failed write changes nothing
    - Authenticated: A tampered file fails to decrypt, it is never read as empty
    - Self-contained: One .xdb file per database
"""

from xdb.store.file import XdbFile, atomic_write_bytes, compute_hash, now_utc
from xdb.store.persistence import DATABASE_SUFFIX, DatabasePersistence

__all__ = [
    "DATABASE_SUFFIX",
    "DatabasePersistence",
    "XdbFile",
    "atomic_write_bytes",
    "compute_hash",
    "now_utc",
]
