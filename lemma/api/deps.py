"""Request-scoped dependencies and helpers shared by the routers."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from fastapi import Header, Request
from starlette.concurrency import run_in_threadpool

from lemma.db.models import Actor
from lemma.db.store import QueryBudget

# Seconds between two client-disconnect probes while a bounded read runs.
DISCONNECT_POLL_INTERVAL = 0.05


def current_actor(
    request: Request,
    x_auth_account: Optional[str] = Header(default=None),
    x_auth_password: Optional[str] = Header(default=None),
) -> Optional[Actor]:
    """Resolve the ``X-AUTH-ACCOUNT`` / ``X-AUTH-PASSWORD`` headers.

    Returns ``None`` for anonymous requests.  Bad credentials raise and end
    the request with a 401.
    """
    account = (x_auth_account or "").strip()
    password = (x_auth_password or "").strip()
    if not account or not password:
        return None
    return request.app.state.accounts.authenticate(account, password)


async def _watch_disconnect(request: Request, budget: QueryBudget) -> None:
    while not budget.exhausted():
        if await request.is_disconnected():
            budget.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


async def run_bounded(
    request: Request,
    timeout_ms: int,
    func: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Run a blocking store read in the thread pool under a :class:`QueryBudget`.

    The budget expires after *timeout_ms* and is cancelled as soon as the
    client disconnects, which interrupts the in-flight SQLite statement.
    """
    budget = QueryBudget(timeout_ms)
    watcher = asyncio.create_task(_watch_disconnect(request, budget))
    try:
        return await run_in_threadpool(func, *args, budget=budget, **kwargs)
    finally:
        watcher.cancel()
