"""Account endpoints.

Routes
------
POST /accounts            Register an account (email verification pending)
GET  /accounts/{name}     Profile of ``@name`` and the refs it owns
GET  /verify/{code}       Activate an account, then redirect to the website
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from lemma.api.deps import current_actor
from lemma.db.models import Actor

router = APIRouter()


class AccountCreate(BaseModel):
    name: str
    email: str
    password: str
    recaptcha_code: str = ""


@router.post("/accounts", status_code=201)
def create_account(body: AccountCreate, request: Request) -> dict[str, Any]:
    """Register a new account; it must be verified before it can log in."""
    account = request.app.state.accounts.create_account(
        body.name, body.email, body.password, body.recaptcha_code
    )
    return {"name": f"@{account.name}"}


@router.get("/accounts/{name}")
def show_account(
    name: str,
    request: Request,
    actor: Optional[Actor] = Depends(current_actor),
) -> dict[str, Any]:
    """Show an account.  Email and private refs are visible to the owner only."""
    return request.app.state.accounts.show_account(name, actor)


@router.get("/verify/{code}")
def verify(code: str, request: Request) -> RedirectResponse:
    """Consume an activation code and bounce back to the website."""
    state = request.app.state
    activated = state.accounts.verify_account(code)
    return RedirectResponse(
        f"{state.settings.website}?activated={1 if activated else 0}",
        status_code=307,
    )
