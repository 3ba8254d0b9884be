"""Parent-edge queries and the ancestor traversal.

The traversal walks ``edges`` upward one hop at a time, issuing one batched
query per level.  Every identity is expanded once: its first occurrence in
the result carries its parents and its owner, repeated occurrences come back
as leaves with ``owner_known=False`` and are reconciled by the resolver.
"""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from typing import Collection, Iterable, Optional

from lemma.db.models import ChainNode
from lemma.db.store import QueryBudget


def _placeholders(values: Iterable[object]) -> str:
    return ",".join("?" for _ in values)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parent_rows(
    conn: sqlite3.Connection,
    child_ids: Collection[int],
    facets: Optional[Collection[str]] = None,
) -> dict[int, list[sqlite3.Row]]:
    """Return the parent edges of *child_ids*, grouped by child, in edge order.

    Each row carries ``parent_id``, ``facet`` and the parent's ``hashid`` and
    ``xdata``.  When *facets* is non-empty only edges with those labels are
    returned.
    """
    if not child_ids:
        return {}
    ids = sorted(child_ids)
    params: list[object] = list(ids)
    facet_clause = ""
    if facets:
        wanted = sorted(facets)
        facet_clause = f"AND e.facet IN ({_placeholders(wanted)})"
        params.extend(wanted)

    rows = conn.execute(
        f"""
        SELECT e.child_id, e.parent_id, e.facet, e.position,
               p.hashid, p.xdata
        FROM   edges e
        LEFT   JOIN nodes p ON p.id = e.parent_id
        WHERE  e.child_id IN ({_placeholders(ids)})
        {facet_clause}
        ORDER  BY e.child_id, e.position
        """,
        params,
    ).fetchall()

    grouped: dict[int, list[sqlite3.Row]] = defaultdict(list)
    for row in rows:
        grouped[row["child_id"]].append(row)
    return grouped


def owner_names(conn: sqlite3.Connection, node_ids: Collection[int]) -> dict[int, Optional[str]]:
    """Map node identities to their owner's name (``None`` for unowned)."""
    if not node_ids:
        return {}
    ids = sorted(node_ids)
    rows = conn.execute(
        f"""
        SELECT n.id, a.name
        FROM   nodes n
        LEFT   JOIN accounts a ON a.id = n.owner_id
        WHERE  n.id IN ({_placeholders(ids)})
        """,
        ids,
    ).fetchall()
    return {r["id"]: r["name"] for r in rows}


def fetch_chain(
    conn: sqlite3.Connection,
    root: ChainNode,
    max_hops: int,
    facets: Optional[Collection[str]] = None,
    budget: Optional[QueryBudget] = None,
) -> ChainNode:
    """Expand *root* upward through its parent edges, at most *max_hops* deep.

    Each identity is expanded at most once, so the work stays linear in the
    number of edges however many paths reach a shared ancestor.  Later
    occurrences are emitted as leaves.  Edges leading back to a node on the
    current path are dropped, so a cyclic store cannot loop the walk.
    Parents whose row is missing or has no address are returned as
    unresolved stubs and are not expanded.
    """
    budget = budget or QueryBudget()
    seen: set[int] = {root.identity}
    frontier: list[tuple[ChainNode, frozenset[int]]] = [(root, frozenset({root.identity}))]

    for _ in range(max_hops):
        if not frontier:
            break
        budget.check()

        grouped = parent_rows(conn, {node.identity for node, _ in frontier}, facets)
        fresh = {
            row["parent_id"]
            for rows in grouped.values()
            for row in rows
            if row["parent_id"] not in seen
        }
        owners = owner_names(conn, fresh)

        next_frontier: list[tuple[ChainNode, frozenset[int]]] = []
        for node, path in frontier:
            for row in grouped.get(node.identity, ()):
                parent_id = row["parent_id"]
                if parent_id in path:
                    continue
                parent = ChainNode(
                    identity=parent_id,
                    hashid=row["hashid"],
                    xdata=row["xdata"],
                    facet=row["facet"],
                )
                node.parents.append(parent)
                if parent_id in seen:
                    continue
                seen.add(parent_id)
                if parent_id in owners:
                    parent.owner = owners[parent_id]
                    parent.owner_known = True
                if parent.resolved:
                    next_frontier.append((parent, path | {parent_id}))
        frontier = next_frontier

    return root
