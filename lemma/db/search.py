"""Full-text search over searchable nodes (SQLite FTS5).

A node matches when its title contains every term, or its synopsis contains
every term.  Results are ordered newest first.
"""

from __future__ import annotations

import re
import sqlite3

from lemma.db.models import Node
from lemma.db.nodes import _NODE_COLUMNS, _row_to_node

_TOKEN_RE = re.compile(r"[^\W_]+", re.UNICODE)


def search_terms(text: str) -> list[str]:
    """Split free text into unique FTS5-safe word tokens, keeping order."""
    seen: set[str] = set()
    terms: list[str] = []
    for token in _TOKEN_RE.findall(text or ""):
        key = token.lower()
        if key not in seen:
            seen.add(key)
            terms.append(token)
    return terms


def _fts_query(terms: list[str]) -> str:
    """Build ``(title has all) OR (synopsis has all)``.

    Every term is wrapped in double quotes so FTS5 treats it as a literal
    rather than as query syntax.
    """
    def all_in(column: str) -> str:
        return " AND ".join(f'{column} : "{t}"' for t in terms)

    return f"({all_in('search_title')}) OR ({all_in('search_synopsis')})"


def search_nodes(conn: sqlite3.Connection, text: str, limit: int = 50) -> list[Node]:
    """Return up to *limit* searchable nodes matching *text*."""
    terms = search_terms(text)
    if not terms:
        return []

    rows = conn.execute(
        f"""
        SELECT {_NODE_COLUMNS}
        FROM   nodes_fts f
        JOIN   nodes n ON n.id = f.rowid
        LEFT   JOIN accounts a ON a.id = n.owner_id
        WHERE  nodes_fts MATCH ?
          AND  n.searchable = 1
          AND  n.hashid IS NOT NULL
        ORDER  BY n.created_at DESC, n.id DESC
        LIMIT  ?
        """,
        (_fts_query(terms), limit),
    ).fetchall()
    return [_row_to_node(r) for r in rows]
