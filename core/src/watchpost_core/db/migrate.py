from __future__ import annotations

import logging
from pathlib import Path

from watchpost_core.db import connect
from watchpost_core.db.migrations import MIGRATIONS

logger = logging.getLogger(__name__)

_SCHEMA_MIGRATIONS_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    name TEXT PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
""".strip()


def applied_migrations(db_path: Path) -> list[str]:
    with connect(db_path) as conn:
        conn.execute(_SCHEMA_MIGRATIONS_DDL)
        rows = conn.execute("SELECT name FROM schema_migrations ORDER BY name ASC;").fetchall()
    return [r["name"] for r in rows]


def apply_migrations(db_path: Path) -> list[str]:
    """Bring the console DB up to the latest schema.

    Re-running is a no-op. Returns the names of the migrations applied by this call.
    """

    db_path.parent.mkdir(parents=True, exist_ok=True)

    done = set(applied_migrations(db_path))
    pending = [(name, sql) for name, sql in MIGRATIONS if name not in done]
    if not pending:
        return []

    with connect(db_path) as conn:
        for name, sql in pending:
            logger.info("Applying migration %s to %s", name, db_path)
            conn.executescript(sql)
            conn.execute("INSERT INTO schema_migrations (name) VALUES (?);", (name,))

    return [name for name, _ in pending]
