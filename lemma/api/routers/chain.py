"""Chain resolution endpoint.

Routes
------
GET /{address}?depth=N&types=a,b     Serialised ancestor tree of a node

Mounted last: the wildcard path would otherwise shadow every other route.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Request

from lemma.api.deps import run_bounded
from lemma.errors import DepthInvalid

router = APIRouter()


def _parse_depth(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        depth = int(raw)
    except ValueError as exc:
        raise DepthInvalid() from exc
    if depth < 1:
        raise DepthInvalid()
    return depth


def _parse_types(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


@router.get("/{address:path}")
async def find_chain(
    address: str,
    request: Request,
    depth: Optional[str] = None,
    types: Optional[str] = None,
) -> dict[str, Any]:
    """Resolve ``[@owner/]hashid`` to its ancestor tree."""
    state = request.app.state
    return await run_bounded(
        request,
        state.settings.query_timeout_ms,
        state.resolver.resolve_chain,
        address,
        depth=_parse_depth(depth),
        facets=_parse_types(types),
    )
