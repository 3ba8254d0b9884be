"""Accounts: sign-up, verification, login and profile view."""

from lemma.accounts.service import AccountService

__all__ = ["AccountService"]
