"""
Atomic encrypted file store for XDB.

One XdbFile wraps one on-disk file. Reads decrypt; writes encrypt and
replace the file in a single step:

    1. Encrypt the plaintext
    2. Write it to a sibling temporary file and fsync
    3. os.replace() the temporary file over the target

A failure at any step removes the temporary file and leaves the
original untouched. Each XdbFile allows one write at a time; a second
write attempted while one is in flight fails immediately.
"""

import hashlib
import json
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from xdb.crypto import Cipher
from xdb.errors import (
    AuthenticationError,
    NotFoundError,
    StorageReadError,
    StorageWriteError,
    WriteInProgressError,
)
from xdb.schema import EncryptedPayload

EMPTY_DOCUMENT = "{}"


def compute_hash(data: Any) -> str:
    """Compute SHA256 hash of data."""
    if data is None:
        return ""
    if isinstance(data, str):
        content = data.encode("utf-8")
    elif isinstance(data, bytes):
        content = data
    else:
        content = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def now_utc() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


def atomic_write_bytes(path: str | Path, data: bytes) -> None:
    """
    Replace `path` with `data` without ever exposing a partial file.

    Raises:
        OSError: If any step fails; the temporary file is removed first
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class XdbFile:
    """
    An encrypted file replaced atomically on every write.

    Usage:
        f = XdbFile(data_dir / "app.xdb", cipher)
        f.write('{"app": {...}}')
        text = f.read()
    """

    def __init__(self, path: str | Path, cipher: Cipher) -> None:
        self.path = Path(path)
        self.cipher = cipher
        self._write_lock = threading.Lock()

    @property
    def write_in_progress(self) -> bool:
        return self._write_lock.locked()

    def exists(self) -> bool:
        return self.path.is_file()

    def size(self) -> int:
        """Size on disk in bytes, 0 if the file is absent."""
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0

    def read_raw(self) -> bytes:
        """The encrypted file exactly as stored."""
        try:
            return self.path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(kind="file", name=str(self.path)) from e
        except OSError as e:
            raise StorageReadError(
                operation="read",
                path=str(self.path),
                underlying_error=str(e),
            ) from e

    def read(self) -> str:
        """
        Decrypt and return the file's plaintext.

        Returns:
            The plaintext, or "{}" if the file does not exist

        Raises:
            StorageReadError: If the file is not a valid encrypted wrapper
            AuthenticationError: If the tag does not verify
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return EMPTY_DOCUMENT
        except OSError as e:
            raise StorageReadError(
                operation="read",
                path=str(self.path),
                underlying_error=str(e),
            ) from e

        try:
            payload = EncryptedPayload.model_validate_json(raw)
        except ValidationError as e:
            raise StorageReadError(
                operation="read",
                path=str(self.path),
                underlying_error="not a valid encrypted file",
            ) from e

        try:
            return self.cipher.decrypt(payload)
        except AuthenticationError as e:
            raise AuthenticationError(path=str(self.path)) from e
        except StorageReadError as e:
            raise StorageReadError(
                operation="read",
                path=str(self.path),
                underlying_error=e.underlying_error,
            ) from e

    def write(self, plaintext: str) -> None:
        """
        Encrypt `plaintext` and atomically replace the file with it.

        Raises:
            WriteInProgressError: If another write on this file has not finished
            StorageWriteError: If the file could not be written
        """
        if not self._write_lock.acquire(blocking=False):
            raise WriteInProgressError(operation="write", path=str(self.path))
        try:
            payload = self.cipher.encrypt(plaintext)
            atomic_write_bytes(self.path, payload.model_dump_json().encode("utf-8"))
        except OSError as e:
            raise StorageWriteError(
                operation="write",
                path=str(self.path),
                underlying_error=str(e),
            ) from e
        finally:
            self._write_lock.release()

    def delete(self) -> None:
        """Remove the file. An absent file is not an error."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageWriteError(
                operation="delete",
                path=str(self.path),
                underlying_error=str(e),
            ) from e

    def copy_to(self, destination: str | Path) -> Path:
        """Copy the encrypted file byte-for-byte to `destination`."""
        destination = Path(destination)
        data = self.read_raw()
        try:
            atomic_write_bytes(destination, data)
        except OSError as e:
            raise StorageWriteError(
                operation="copy",
                path=str(destination),
                underlying_error=str(e),
            ) from e
        return destination
