"""Queries and mutations for the ``nodes`` table.

Nodes are immutable: the only update ever issued is the one-shot address
assignment that follows the insert inside the same transaction.
"""

from __future__ import annotations

import sqlite3
from time import time
from typing import Iterable, Optional

from lemma.db.models import NewNode, Node, NodeLookup

_NODE_COLUMNS = """
    n.id, n.hashid, a.name AS owner_name, n.xdata, n.searchable,
    n.search_title, n.search_synopsis, n.created_at
"""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_node(row: sqlite3.Row) -> Node:
    return Node(
        id=row["id"],
        hashid=row["hashid"],
        owner_name=row["owner_name"],
        xdata=row["xdata"],
        searchable=bool(row["searchable"]),
        search_title=row["search_title"],
        search_synopsis=row["search_synopsis"],
        created_at=row["created_at"],
    )


def _placeholders(values: Iterable[object]) -> str:
    return ",".join("?" for _ in values)


# ---------------------------------------------------------------------------
# Mutations (call inside GraphStore.write())
# ---------------------------------------------------------------------------

def insert_node(conn: sqlite3.Connection, new: NewNode, now: Optional[int] = None) -> int:
    """Insert a node and its parent edges; return the assigned identity.

    The node has no address yet.  Callers must assign one with
    :func:`assign_hashid` before committing.
    """
    cursor = conn.execute(
        """
        INSERT INTO nodes (owner_id, xdata, searchable, search_title, search_synopsis, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            new.owner_id,
            new.xdata,
            1 if new.searchable else 0,
            new.search_title,
            new.search_synopsis,
            int(time()) if now is None else now,
        ),
    )
    node_id = cursor.lastrowid
    conn.executemany(
        "INSERT INTO edges (child_id, parent_id, facet, position) VALUES (?, ?, ?, ?)",
        [
            (node_id, parent_id, facet, position)
            for position, (parent_id, facet) in enumerate(new.parents)
        ],
    )
    return node_id


def assign_hashid(conn: sqlite3.Connection, node_id: int, hashid: str) -> None:
    """Write the address of a freshly inserted node.

    Raises:
        sqlite3.IntegrityError: If the node is missing or already addressed.
    """
    cursor = conn.execute(
        "UPDATE nodes SET hashid = ? WHERE id = ? AND hashid IS NULL",
        (hashid, node_id),
    )
    if cursor.rowcount != 1:
        raise sqlite3.IntegrityError(f"node {node_id} cannot be assigned an address")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def find_by_hashids(
    conn: sqlite3.Connection, hashids: Iterable[str]
) -> dict[str, NodeLookup]:
    """Resolve many hashids in one query.  Unknown hashids are simply absent."""
    wanted = sorted(set(hashids))
    if not wanted:
        return {}
    rows = conn.execute(
        f"""
        SELECT n.id, n.hashid, a.name AS owner_name
        FROM   nodes n
        LEFT   JOIN accounts a ON a.id = n.owner_id
        WHERE  n.hashid IN ({_placeholders(wanted)})
        """,
        wanted,
    ).fetchall()
    return {
        r["hashid"]: NodeLookup(id=r["id"], hashid=r["hashid"], owner_name=r["owner_name"])
        for r in rows
    }


def get_node(conn: sqlite3.Connection, node_id: int) -> Optional[Node]:
    """Fetch an addressed node by identity.  Returns ``None`` if not found."""
    row = conn.execute(
        f"""
        SELECT {_NODE_COLUMNS}
        FROM   nodes n
        LEFT   JOIN accounts a ON a.id = n.owner_id
        WHERE  n.id = ? AND n.hashid IS NOT NULL
        """,
        (node_id,),
    ).fetchone()
    return _row_to_node(row) if row else None


def list_owned_nodes(
    conn: sqlite3.Connection,
    owner_id: int,
    include_private: bool = False,
) -> list[Node]:
    """Return nodes owned by an account, newest first."""
    visibility = "" if include_private else "AND n.searchable = 1"
    rows = conn.execute(
        f"""
        SELECT {_NODE_COLUMNS}
        FROM   nodes n
        LEFT   JOIN accounts a ON a.id = n.owner_id
        WHERE  n.owner_id = ? AND n.hashid IS NOT NULL {visibility}
        ORDER  BY n.created_at DESC, n.id DESC
        """,
        (owner_id,),
    ).fetchall()
    return [_row_to_node(r) for r in rows]


def count_nodes(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM nodes").fetchone()[0]
