"""Account maintenance commands."""

from __future__ import annotations

import typer

from lemma.accounts import AccountService
from lemma.cache import NullCache
from lemma.config import settings
from lemma.db import GraphStore, get_connection, init_db
from lemma.recaptcha import RecaptchaVerifier

accounts_app = typer.Typer(help="Account maintenance.", no_args_is_help=True)


def _service(conn) -> AccountService:
    return AccountService(
        GraphStore(conn),
        NullCache(),
        RecaptchaVerifier(secret=""),
        server_host_url=settings.server_host_url,
        grace_hours=settings.unvalidated_grace_hours,
    )


@accounts_app.command("cleanup")
def accounts_cleanup() -> None:
    """Delete accounts left unvalidated past the grace window."""
    conn = get_connection()
    init_db(conn)
    try:
        removed = _service(conn).cleanup_unvalidated()
    finally:
        conn.close()
    typer.echo(f"[accounts cleanup] Removed {removed} unvalidated accounts.")


@accounts_app.command("verify")
def accounts_verify(
    code: str = typer.Argument(..., help="Activation code from the sign-up log."),
) -> None:
    """Activate an account by its activation code."""
    conn = get_connection()
    init_db(conn)
    try:
        activated = _service(conn).verify_account(code)
    finally:
        conn.close()
    if not activated:
        typer.echo("[accounts verify] Unknown or already used code.")
        raise typer.Exit(code=1)
    typer.echo("[accounts verify] Account activated.")
