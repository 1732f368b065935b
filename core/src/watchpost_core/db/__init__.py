from __future__ import annotations

import sqlite3
from pathlib import Path

from watchpost_core.home import WatchPostPaths

DEFAULT_DB_FILENAME = "console.sqlite3"


def resolve_db_path(paths: WatchPostPaths) -> Path:
    """Resolve the console SQLite database path (under the `db_dir` override)."""

    return paths.db_dir / DEFAULT_DB_FILENAME


def connect(db_path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn
