"""Search endpoint over searchable nodes.

Routes
------
GET /search/{terms}
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from lemma.api.deps import run_bounded

router = APIRouter()


@router.get("/search/{terms}")
async def search(terms: str, request: Request) -> list[dict[str, Any]]:
    """Return searchable nodes whose title or synopsis contains every term."""
    state = request.app.state
    return await run_bounded(
        request, state.settings.query_timeout_ms, state.search.search, terms
    )
