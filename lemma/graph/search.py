"""Free-text search over searchable nodes, cached per term string."""

from __future__ import annotations

import logging
from typing import Any, Optional

from lemma.cache import ResponseCache
from lemma.db.search import search_nodes
from lemma.db.store import GraphStore, QueryBudget
from lemma.errors import InternalError
from lemma.graph.refs import format_address

logger = logging.getLogger(__name__)


class SearchService:
    def __init__(
        self,
        store: GraphStore,
        cache: ResponseCache,
        timeout_ms: int = 300,
        limit: int = 50,
    ) -> None:
        self.store = store
        self.cache = cache
        self.timeout_ms = timeout_ms
        self.limit = limit

    def search(self, terms: str, budget: Optional[QueryBudget] = None) -> list[dict[str, Any]]:
        """Return matching searchable nodes, newest first."""
        terms = (terms or "").strip()
        if not terms:
            return []

        key = f"search-{terms}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cache: %s", key)
            return cached

        with self.store.read(budget or QueryBudget(self.timeout_ms)) as conn:
            nodes = search_nodes(conn, terms, limit=self.limit)

        try:
            results = [
                {
                    "id": format_address(n.owner_name, n.hashid or ""),
                    "data": n.data,
                    "search_title": n.search_title,
                    "search_synopsis": n.search_synopsis,
                    "created_at": n.created_at_iso(),
                }
                for n in nodes
            ]
        except ValueError as exc:
            logger.error("search hit holds a corrupt payload: %s", exc)
            raise InternalError() from exc

        self.cache.set(key, results)
        return results
