"""
XDB - Embeddable, encrypted, single-node data store with a small SQL dialect.

XDB keeps named databases of typed tables in memory and persists each
one as a single encrypted file. It provides:
- A restricted SQL surface (SELECT/INSERT/UPDATE/DELETE/CREATE/DROP)
- PRIMARY KEY and NOT NULL enforcement
- Atomic, authenticated (AES-256-GCM) file writes
- Integrity-checked backups with partial restore

Example usage:
    >>> from xdb import XdbContext, load_settings
    >>> with XdbContext(load_settings("xdb.yaml")) as ctx:
    ...     ctx.create_database("app")
    ...     ctx.execute_statement("app", "CREATE TABLE t (id INTEGER PRIMARY KEY)")

    $ xdb query app "SELECT * FROM t"
"""

__version__ = "0.1.0"
__author__ = "XDB Contributors"

from xdb.config import Settings, load_settings
from xdb.context import XdbContext
from xdb.errors import XdbError

__all__ = [
    "Settings",
    "XdbContext",
    "XdbError",
    "__author__",
    "__version__",
    "load_settings",
]
