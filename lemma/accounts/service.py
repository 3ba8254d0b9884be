"""Account management: sign-up, email verification, login and profile view.

Email delivery is an external collaborator.  Activation links are logged so
an operator (or a mail relay tailing the log) can deliver them.
"""

from __future__ import annotations

import hashlib
import logging
import re
import secrets
from time import time
from typing import Any, Optional

from lemma.accounts.passwords import ITERATIONS, check_password, hash_password
from lemma.cache import ResponseCache
from lemma.db.accounts import (
    delete_unvalidated,
    get_account_by_code,
    get_account_by_email,
    get_account_by_name,
    insert_account,
    mark_validated,
)
from lemma.db.models import Account, Actor
from lemma.db.nodes import list_owned_nodes
from lemma.db.store import GraphStore
from lemma.errors import (
    AccountInvalid,
    AccountNotFound,
    AccountNotValidated,
    BotCheckFailed,
    LoginFailed,
)
from lemma.graph.refs import format_address
from lemma.recaptcha import RecaptchaVerifier

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[a-z0-9_-]{3,30}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD = 8
MAX_PASSWORD = 128


def normalize_name(name: str) -> str:
    name = (name or "").strip()
    if name.startswith("@"):
        name = name[1:]
    return name.lower()


class AccountService:
    def __init__(
        self,
        store: GraphStore,
        cache: ResponseCache,
        verifier: RecaptchaVerifier,
        server_host_url: str = "http://localhost:1323",
        grace_hours: int = 48,
        password_iterations: int = ITERATIONS,
    ) -> None:
        self.store = store
        self.cache = cache
        self.verifier = verifier
        self.server_host_url = server_host_url.rstrip("/")
        self.grace_hours = grace_hours
        self.password_iterations = password_iterations

    # ------------------------------------------------------------------
    # Sign-up / verification
    # ------------------------------------------------------------------

    def create_account(
        self,
        name: str,
        email: str,
        password: str,
        recaptcha_code: str = "",
    ) -> Account:
        """Register an unvalidated account and issue its activation code."""
        name = normalize_name(name)
        if not _NAME_RE.match(name):
            raise AccountInvalid(
                "account name must be 3-30 characters of a-z, 0-9, _ or -"
            )
        email = (email or "").strip().lower()
        if len(email) > 254 or not _EMAIL_RE.match(email):
            raise AccountInvalid("email is invalid")
        if not (MIN_PASSWORD <= len(password or "") <= MAX_PASSWORD):
            raise AccountInvalid(
                f"password must be between {MIN_PASSWORD} and {MAX_PASSWORD} characters"
            )
        if not self.verifier.verify(recaptcha_code):
            raise BotCheckFailed()

        password_hash = hash_password(password, self.password_iterations)
        code = secrets.token_urlsafe(24)
        now = int(time())
        with self.store.write() as conn:
            if get_account_by_name(conn, name) is not None:
                raise AccountInvalid("account name is already taken")
            if get_account_by_email(conn, email) is not None:
                raise AccountInvalid("email is already registered")
            account_id = insert_account(conn, name, email, password_hash, code, now=now)

        logger.info(
            "activation link for @%s: %s/verify/%s", name, self.server_host_url, code
        )
        return Account(
            id=account_id,
            name=name,
            email=email,
            password_hash=password_hash,
            validated=False,
            activation_code=code,
            created_at=now,
        )

    def verify_account(self, code: str) -> bool:
        """Validate the account holding *code*.  Codes are single-use."""
        code = (code or "").strip()
        if not code:
            return False
        with self.store.write() as conn:
            account = get_account_by_code(conn, code)
            if account is None:
                return False
            mark_validated(conn, account.id)
        logger.info("account @%s validated", account.name)
        return True

    def cleanup_unvalidated(self, now: Optional[int] = None) -> int:
        """Delete accounts left unvalidated past the grace window."""
        now = int(time()) if now is None else now
        cutoff = now - self.grace_hours * 3600
        with self.store.write() as conn:
            removed = delete_unvalidated(conn, cutoff)
        if removed:
            logger.info("removed %d unvalidated accounts", removed)
        return removed

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def authenticate(self, account: str, password: str) -> Actor:
        """Resolve login credentials to an :class:`Actor`.

        *account* may be the account name (with or without ``@``) or its
        email, case-insensitively.

        Raises:
            LoginFailed: Unknown account or wrong password.
            AccountNotValidated: Credentials are right but the email was
                never verified.
        """
        account = (account or "").strip()
        digest = hashlib.sha256(password.encode("utf-8")).hexdigest()
        key = f"login-{account.lower()}-{digest}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        with self.store.read() as conn:
            found = get_account_by_email(conn, account.lower())
            if found is None:
                found = get_account_by_name(conn, normalize_name(account))

        if found is None or not check_password(password, found.password_hash):
            raise LoginFailed()
        if not found.validated:
            raise AccountNotValidated()

        actor = Actor(identity=found.id, name=found.name, email=found.email)
        self.cache.set(key, actor)
        return actor

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def show_account(self, name: str, actor: Optional[Actor] = None) -> dict[str, Any]:
        """Summarise an account and the refs it owns, newest first.

        The email address and non-searchable refs are only shown to the
        account itself.
        """
        if not (name or "").startswith("@"):
            raise AccountNotFound()
        name = normalize_name(name)

        with self.store.read() as conn:
            account = get_account_by_name(conn, name)
            if account is None:
                raise AccountNotFound()
            is_owner = actor is not None and actor.identity == account.id
            nodes = list_owned_nodes(conn, account.id, include_private=is_owner)

        out: dict[str, Any] = {"name": f"@{account.name}"}
        if is_owner:
            out["email"] = account.email

        refs = []
        for node in nodes:
            ref: dict[str, Any] = {
                "id": format_address(account.name, node.hashid or ""),
                "data": node.data,
                "searchable": node.searchable,
                "created_at": node.created_at_iso(),
            }
            if node.search_title is not None:
                ref["search_title"] = node.search_title
            if node.search_synopsis is not None:
                ref["search_synopsis"] = node.search_synopsis
            refs.append(ref)
        out["refs"] = refs
        return out
