"""Chain resolution: rebuild a node's ancestor DAG as a serialised tree.

Steps, in order:

1. parse ``[@owner/]hashid``
2. answer from the response cache when possible
3. resolve the hashid and check the declared owner-scope
4. walk parent edges upward (depth limit, facet filter, hard ceiling)
5. back-fill owners missing from repeated occurrences of a node
6. serialise, dropping unresolved stubs
7. cache and return

Scope mismatches and missing nodes raise the same :class:`RefNotFound` so a
caller cannot probe which addresses exist under another owner.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from lemma.cache import ResponseCache
from lemma.db.edges import fetch_chain
from lemma.db.models import ChainNode
from lemma.db.nodes import get_node
from lemma.db.store import GraphStore, QueryBudget
from lemma.errors import DepthInvalid, InternalError, MalformedAddress, RefNotFound
from lemma.graph.codec import AddressCodec
from lemma.graph.refs import format_address, owner_scope_matches, split_address

logger = logging.getLogger(__name__)


def normalize_facets(facets: Optional[Iterable[str]]) -> frozenset[str]:
    """Strip labels and drop blanks.  An empty result means "no filter"."""
    if not facets:
        return frozenset()
    return frozenset(f.strip() for f in facets if f and f.strip())


def chain_cache_key(address: str, depth: Optional[int], facets: frozenset[str]) -> str:
    return "*-{}-{}-{}".format(address, depth or "", ",".join(sorted(facets)))


def backfill_owners(root: ChainNode) -> None:
    """Copy ownership onto occurrences that came back without it.

    Pass one records the owner of every occurrence that has ownership data,
    keyed by identity.  Pass two fills every occurrence lacking it from that
    table.  Occurrences whose identity never carried ownership data are left
    untouched and serialise as unowned.
    """
    owners: dict[int, Optional[str]] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        if node.owner_known and node.identity not in owners:
            owners[node.identity] = node.owner
        stack.extend(node.parents)

    stack = [root]
    while stack:
        node = stack.pop()
        if not node.owner_known and node.identity in owners:
            node.owner = owners[node.identity]
            node.owner_known = True
        stack.extend(node.parents)


def serialize_chain(node: ChainNode, root: bool = True) -> dict[str, Any]:
    """Render a chain node and its resolved ancestors."""
    try:
        data = json.loads(node.xdata or "")
    except ValueError as exc:
        logger.error("node %s holds a corrupt payload: %s", node.identity, exc)
        raise InternalError() from exc

    out: dict[str, Any] = {
        "id": format_address(node.owner, node.hashid or ""),
        "data": data,
        "refs": [serialize_chain(p, root=False) for p in node.parents if p.resolved],
    }
    if not root and node.facet is not None:
        out["ref_type"] = node.facet
    return out


class ChainResolver:
    def __init__(
        self,
        store: GraphStore,
        codec: AddressCodec,
        cache: ResponseCache,
        timeout_ms: int = 300,
        max_depth: int = 100,
    ) -> None:
        self.store = store
        self.codec = codec
        self.cache = cache
        self.timeout_ms = timeout_ms
        self.max_depth = max_depth

    def resolve_chain(
        self,
        address: str,
        depth: Optional[int] = None,
        facets: Optional[Iterable[str]] = None,
        budget: Optional[QueryBudget] = None,
    ) -> dict[str, Any]:
        """Return the serialised ancestor tree of the node at *address*.

        Args:
            address: ``[@owner/]hashid``.
            depth: Maximum hops from the root; ``None`` walks up to the
                configured ceiling.
            facets: Only follow edges with these labels.  Empty means all.
            budget: Deadline/cancellation for the read; defaults to the
                configured query timeout.

        Raises:
            DepthInvalid: *depth* is not a positive integer.
            RefNotFound: The address is malformed, unknown, or its owner-scope
                does not match the node's true owner.
            StoreTimeout, RequestCancelled, InternalError: Store failures.
        """
        if depth is not None and depth < 1:
            raise DepthInvalid()

        try:
            parsed = split_address(address)
        except ValueError as exc:
            raise RefNotFound() from exc

        facet_set = normalize_facets(facets)
        key = chain_cache_key(str(parsed), depth, facet_set)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cache: %s", key)
            return cached

        try:
            identity = self.codec.decode(parsed.hashid)
        except MalformedAddress as exc:
            raise RefNotFound() from exc

        hops = min(depth, self.max_depth) if depth else self.max_depth
        budget = budget or QueryBudget(self.timeout_ms)
        with self.store.read(budget) as conn:
            node = get_node(conn, identity)
            if (
                node is None
                or node.hashid != parsed.hashid
                or not owner_scope_matches(parsed.owner, node.owner_name)
            ):
                raise RefNotFound()

            root = ChainNode(
                identity=node.id,
                hashid=node.hashid,
                xdata=node.xdata,
                owner=node.owner_name,
                owner_known=True,
            )
            fetch_chain(conn, root, hops, facet_set, budget)

        backfill_owners(root)
        tree = serialize_chain(root)
        self.cache.set(key, tree)
        return tree
