"""Lemma Chain CLI: entry-point for operating the service.

Usage:
    lemma --help
    python cli/main.py --help

Sub-command groups:
    db        database initialisation and statistics
    accounts  account maintenance
    hashid    address codec helpers
    chain     resolve a node's ancestor chain
    serve     run the HTTP API
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from lemma.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json
import logging
from typing import Optional

import typer

from cli.commands.accounts import accounts_app
from cli.rendering import render_chain
from lemma.cache import NullCache
from lemma.config import settings
from lemma.db import GraphStore, get_connection, init_db
from lemma.db.nodes import count_nodes
from lemma.errors import LemmaError, MalformedAddress
from lemma.graph import AddressCodec, ChainResolver

app = typer.Typer(
    name="lemma",
    help="Lemma Chain service CLI.",
    no_args_is_help=True,
)
app.add_typer(accounts_app, name="accounts")


def _codec() -> AddressCodec:
    return AddressCodec(
        salt=settings.hashid_salt,
        min_length=settings.hashid_min_length,
        alphabet=settings.hashid_alphabet,
    )


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


@db_app.command("stats")
def db_stats() -> None:
    """Print the number of stored nodes."""
    conn = get_connection()
    init_db(conn)
    try:
        total = count_nodes(conn)
    finally:
        conn.close()
    typer.echo(f"[db stats] {total} nodes")


# ---------------------------------------------------------------------------
# Codec helpers
# ---------------------------------------------------------------------------
hashid_app = typer.Typer(help="Address codec helpers.", no_args_is_help=True)
app.add_typer(hashid_app, name="hashid")


@hashid_app.command("encode")
def hashid_encode(identity: int = typer.Argument(..., help="Internal node identity.")) -> None:
    """Print the hashid of an internal identity."""
    try:
        typer.echo(_codec().encode(identity))
    except ValueError as exc:
        typer.echo(f"[hashid encode] {exc}", err=True)
        raise typer.Exit(code=1)


@hashid_app.command("decode")
def hashid_decode(hashid: str = typer.Argument(..., help="Public hashid.")) -> None:
    """Print the internal identity behind a hashid."""
    try:
        typer.echo(str(_codec().decode(hashid)))
    except MalformedAddress as exc:
        typer.echo(f"[hashid decode] {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Chain resolution
# ---------------------------------------------------------------------------
@app.command("chain")
def chain(
    address: str = typer.Argument(..., help="Node address, e.g. @alice/abc123."),
    depth: Optional[int] = typer.Option(None, help="Maximum hops from the node."),
    types: Optional[str] = typer.Option(None, help="Comma-separated ref types to follow."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON instead of a tree."),
) -> None:
    """Resolve a node's ancestor chain straight from the database."""
    conn = get_connection()
    init_db(conn)
    resolver = ChainResolver(
        GraphStore(conn),
        _codec(),
        NullCache(),
        timeout_ms=0,
        max_depth=settings.chain_max_depth,
    )
    facets = [t for t in (types or "").split(",") if t.strip()]
    try:
        tree = resolver.resolve_chain(address, depth=depth, facets=facets)
    except LemmaError as exc:
        typer.echo(f"[chain] {exc.message}", err=True)
        raise typer.Exit(code=1)
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps(tree, indent=2))
    else:
        typer.echo(render_chain(tree))


# ---------------------------------------------------------------------------
# HTTP server
# ---------------------------------------------------------------------------
@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address."),
    port: Optional[int] = typer.Option(None, help="Bind port."),
    reload: bool = typer.Option(False, help="Reload on code changes."),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn  # noqa: PLC0415

    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run(
        "lemma.api.app:app",
        host=host or settings.listen_host,
        port=port or settings.listen_port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
