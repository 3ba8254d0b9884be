"""Node creation endpoint.

Routes
------
POST   /ref        Create a node, returns ``{"link": "<address>"}``
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from lemma.api.deps import current_actor
from lemma.db.models import Actor
from lemma.graph.creator import CreateNodeRequest

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class NodeCreate(BaseModel):
    # ``data`` is validated by NodeCreator so its errors keep their order.
    data: Any = None
    owner: Optional[str] = None
    parents: list[str] = []
    searchable: bool = False
    search_title: Optional[str] = None
    search_synopsis: Optional[str] = None
    recaptcha_code: str = ""


class LinkResponse(BaseModel):
    link: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/ref", response_model=LinkResponse)
def create(
    body: NodeCreate,
    request: Request,
    actor: Optional[Actor] = Depends(current_actor),
) -> dict[str, Any]:
    """Create a new node, optionally owned and with typed parent refs."""
    creator = request.app.state.creator
    link = creator.create_node(CreateNodeRequest(**body.model_dump()), actor)
    return {"link": link}
