"""Opens the SQLite database that backs the graph store.

The service keeps one connection for its whole lifetime and hands it to
:class:`~lemma.db.store.GraphStore`, which owns every transaction::

    conn = get_connection()
    init_db(conn)
    store = GraphStore(conn)
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from lemma.config import settings

# Milliseconds a writer waits on a locked database before giving up.
BUSY_TIMEOUT_MS = 5000


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Return a connection ready for :class:`~lemma.db.store.GraphStore`.

    The connection runs in autocommit mode (``isolation_level=None``) so the
    store's explicit ``BEGIN`` / ``COMMIT`` are the only transactions.  Rows
    come back as :class:`sqlite3.Row`, foreign keys are enforced and the
    journal is WAL.

    Args:
        db_path: Database file, or ``":memory:"``.  Defaults to
            ``settings.db_path`` inside the workspace directory.
    """
    target = db_path or settings.db_path
    in_memory = str(target) == ":memory:"
    if not in_memory:
        settings.ensure_workspace()

    conn = sqlite3.connect(str(target), check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
    if not in_memory:
        conn.execute("PRAGMA journal_mode = WAL")
    return conn
