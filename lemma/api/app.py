"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection, initialises the schema
and wires the services (codec, cache, node creator, chain resolver, search,
accounts) onto ``app.state``.  An optional background task removes accounts
left unvalidated past their grace window.  On shutdown the task is cancelled
and the connection closed.

Routers
-------
    POST /accounts, GET /accounts/{name}, GET /verify/{code}
    POST /ref
    GET  /search/{terms}
    GET  /{address}          (wildcard, mounted last)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from lemma.accounts import AccountService
from lemma.accounts.passwords import ITERATIONS
from lemma.api.routers import accounts as accounts_router
from lemma.api.routers import chain as chain_router
from lemma.api.routers import nodes as nodes_router
from lemma.api.routers import search as search_router
from lemma.cache import make_cache
from lemma.config import Settings, settings as default_settings
from lemma.db import GraphStore, get_connection, init_db
from lemma.errors import LemmaError
from lemma.graph import AddressCodec, ChainResolver, NodeCreator, SearchService
from lemma.recaptcha import RecaptchaVerifier

logger = logging.getLogger(__name__)


def wire_services(
    app: FastAPI,
    conn: sqlite3.Connection,
    cfg: Settings,
    verifier: RecaptchaVerifier,
    password_iterations: int = ITERATIONS,
) -> None:
    """Build every service once and attach it to ``app.state``."""
    store = GraphStore(conn)
    cache = make_cache(cfg.cache_ttl)
    codec = AddressCodec(
        salt=cfg.hashid_salt,
        min_length=cfg.hashid_min_length,
        alphabet=cfg.hashid_alphabet,
    )

    app.state.settings = cfg
    app.state.store = store
    app.state.cache = cache
    app.state.codec = codec
    app.state.creator = NodeCreator(
        store,
        codec,
        verifier,
        max_payload_bytes=cfg.max_payload_bytes,
        max_parents=cfg.max_parent_refs,
    )
    app.state.resolver = ChainResolver(
        store,
        codec,
        cache,
        timeout_ms=cfg.query_timeout_ms,
        max_depth=cfg.chain_max_depth,
    )
    app.state.search = SearchService(
        store, cache, timeout_ms=cfg.query_timeout_ms, limit=cfg.search_limit
    )
    app.state.accounts = AccountService(
        store,
        cache,
        verifier,
        server_host_url=cfg.server_host_url,
        grace_hours=cfg.unvalidated_grace_hours,
        password_iterations=password_iterations,
    )


async def _cleanup_loop(accounts: AccountService, interval_hours: int) -> None:
    """Remove unvalidated accounts once per interval, forever."""
    while True:
        await asyncio.sleep(interval_hours * 3600)
        try:
            await run_in_threadpool(accounts.cleanup_unvalidated)
        except LemmaError:
            logger.exception("account cleanup failed")


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------

def _lemma_error_handler(request: Request, exc: LemmaError) -> Response:
    if exc.empty_body:
        return Response(status_code=exc.status_code)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid')}" if field else first.get("msg", "invalid")
    else:
        message = "invalid request"
    return JSONResponse({"error": message}, status_code=400)


def create_app(
    cfg: Optional[Settings] = None,
    conn: Optional[sqlite3.Connection] = None,
    verifier: Optional[RecaptchaVerifier] = None,
    password_iterations: int = ITERATIONS,
) -> FastAPI:
    """Return a fully-configured FastAPI application instance.

    Args:
        cfg: Settings to use; defaults to the module-level singleton.
        conn: Pre-opened connection (e.g. in-memory for tests).  When omitted
            the lifespan opens ``cfg.db_path`` and closes it on shutdown.
        verifier: Bot-check verifier; defaults to one built from *cfg*.
        password_iterations: PBKDF2 work factor for new passwords.
    """
    cfg = cfg or default_settings
    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Open the DB on startup and close it on shutdown."""
        owned = conn is None
        db = get_connection(cfg.db_path) if owned else conn
        init_db(db)
        wire_services(
            app,
            db,
            cfg,
            verifier
            or RecaptchaVerifier(
                cfg.recaptcha_secret, cfg.recaptcha_verify_url, cfg.recaptcha_timeout
            ),
            password_iterations=password_iterations,
        )

        cleanup_task = None
        if cfg.cleanup_interval_hours > 0:
            cleanup_task = asyncio.create_task(
                _cleanup_loop(app.state.accounts, cfg.cleanup_interval_hours)
            )
        try:
            yield
        finally:
            if cleanup_task is not None:
                cleanup_task.cancel()
            if owned:
                db.close()

    app = FastAPI(
        title="Lemma Chain API",
        description=(
            "Immutable JSON nodes linked by typed parent refs, addressed by "
            "short owner-scoped hashids. Exposes node creation, chain "
            "resolution, search and accounts."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def private_cache_control(request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "private"
        return response

    app.add_exception_handler(LemmaError, _lemma_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    app.include_router(accounts_router.router, tags=["accounts"])
    app.include_router(nodes_router.router, tags=["nodes"])
    app.include_router(search_router.router, tags=["search"])
    app.include_router(chain_router.router, tags=["chain"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn lemma.api.app:app
app = create_app()
