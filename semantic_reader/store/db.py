"""
SQLite connection for the vector store.

Vectors are only useful if a committed upsert is still there after a crash,
so the file runs in WAL mode with ``synchronous=FULL``. The table layout
lives in ``schema.sql`` beside this module and is applied on every open.
"""

from __future__ import annotations
import pathlib
import sqlite3
from typing import Optional

from semantic_reader.config import store as store_cfg

SCHEMA_FILE = pathlib.Path(__file__).with_name("schema.sql")

# journal_mode must come first: synchronous is interpreted per journal mode
_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=FULL;",
    "PRAGMA temp_store=MEMORY;",
    "PRAGMA busy_timeout=3000;",
)


def db_path() -> str:
    return store_cfg.VECTOR_DB_PATH


def connect(path: Optional[str] = None) -> sqlite3.Connection:
    """Open ``path`` (default ``VECTOR_DB_PATH``), creating its directory.

    The connection is in autocommit mode and shared with worker threads;
    callers group writes with ``with conn:`` and an explicit ``BEGIN``.
    """
    target = path or db_path()
    if target != ":memory:":
        pathlib.Path(target).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(target, isolation_level=None, check_same_thread=False)
    for pragma in _PRAGMAS:
        conn.execute(pragma)
    conn.row_factory = sqlite3.Row
    return conn


def migrate(conn: sqlite3.Connection) -> None:
    with conn:
        conn.executescript(SCHEMA_FILE.read_text(encoding="utf-8"))


def wal_checkpoint_truncate(conn: sqlite3.Connection) -> None:
    """Fold the WAL back into the main file and reset it to zero length."""
    conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")
