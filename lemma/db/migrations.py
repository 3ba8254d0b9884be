"""Schema bootstrap and versioned migrations for the graph store.

``init_db(conn)`` runs ``schema.sql`` (idempotent) and then any pending
entries of :data:`MIGRATIONS`, recording each one in ``schema_version``.
"""

from __future__ import annotations

import sqlite3

from lemma.config import settings

# (version, sql) pairs applied in order by migrate().
MIGRATIONS: list[tuple[int, str]] = []


def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables, indexes, triggers, and virtual tables.

    This function is **idempotent**: every DDL statement uses ``IF NOT EXISTS``
    so calling it multiple times on the same database is safe.
    """
    sql = settings.schema_path.read_text(encoding="utf-8")
    # executescript() handles compound statements (BEGIN…END in triggers).
    conn.executescript(sql)
    _ensure_version_table(conn)
    migrate(conn)


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the internal schema-version tracking table if absent."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            version  INTEGER PRIMARY KEY,
            applied_at INTEGER DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
        )
        """
    )


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 if none applied)."""
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) FROM schema_version"
    ).fetchone()
    return row[0] if row else 0


def migrate(
    conn: sqlite3.Connection,
    migrations: list[tuple[int, str]] | None = None,
) -> None:
    """Run any pending incremental migrations.

    Each migration is applied in its own transaction together with its
    ``schema_version`` record.
    """
    applied = current_version(conn)
    for version, sql in sorted(migrations if migrations is not None else MIGRATIONS):
        if version <= applied:
            continue
        conn.execute("BEGIN")
        try:
            conn.execute(sql)
            conn.execute("INSERT INTO schema_version(version) VALUES (?)", (version,))
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
