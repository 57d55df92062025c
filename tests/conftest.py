"""
Pytest configuration and fixtures for XDB tests.

This module provides shared fixtures used across unit and integration
tests. Key derivation runs with tiny cost parameters so tests stay fast.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from xdb.config import Settings
from xdb.context import XdbContext
from xdb.crypto import Cipher, KdfParams
from xdb.engine import StatementEngine

TEST_SECRET = "test-secret"

FAST_KDF = KdfParams(
    argon2_memory_cost=8,
    argon2_iterations=1,
    argon2_lanes=1,
    scrypt_n=16,
    scrypt_r=1,
    scrypt_p=1,
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fast_kdf() -> KdfParams:
    """Cheap key-derivation parameters."""
    return FAST_KDF


@pytest.fixture
def cipher() -> Cipher:
    """Cipher bound to the test secret."""
    return Cipher(TEST_SECRET, FAST_KDF)


@pytest.fixture
def data_dir(temp_dir: Path) -> Path:
    """Data directory inside the temporary directory."""
    path = temp_dir / "data"
    path.mkdir()
    return path


@pytest.fixture
def settings(data_dir: Path) -> Settings:
    """Settings pointing at the temporary data directory."""
    return Settings(
        data_dir=data_dir,
        encryption_key=TEST_SECRET,
        max_backups=5,
        kdf=FAST_KDF,
    )


@pytest.fixture
def xdb(settings: Settings) -> Generator[XdbContext, None, None]:
    """An initialized context over the temporary data directory."""
    with XdbContext(settings) as ctx:
        yield ctx


@pytest.fixture
def engine() -> StatementEngine:
    """Engine with an `app` database holding a populated `users` table."""
    eng = StatementEngine()
    eng.create_database("app")
    eng.execute_statement(
        "app",
        "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, age INTEGER)",
    )
    for user_id, name, age in [(1, "Alice", 30), (2, "Bob", 25), (3, "Charlie", 35)]:
        eng.execute_statement(
            "app",
            f"INSERT INTO users (id, name, age) VALUES ({user_id}, '{name}', {age})",
        )
    return eng
