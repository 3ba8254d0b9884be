"""Queries and mutations for the ``accounts`` table."""

from __future__ import annotations

import sqlite3
from time import time
from typing import Optional

from lemma.db.models import Account


def _row_to_account(row: sqlite3.Row) -> Account:
    return Account(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        validated=bool(row["validated"]),
        activation_code=row["activation_code"],
        created_at=row["created_at"],
    )


def insert_account(
    conn: sqlite3.Connection,
    name: str,
    email: str,
    password_hash: str,
    activation_code: Optional[str],
    validated: bool = False,
    now: Optional[int] = None,
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO accounts (name, email, password_hash, validated, activation_code, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            name,
            email,
            password_hash,
            1 if validated else 0,
            activation_code,
            int(time()) if now is None else now,
        ),
    )
    return cursor.lastrowid


def get_account_by_name(conn: sqlite3.Connection, name: str) -> Optional[Account]:
    row = conn.execute("SELECT * FROM accounts WHERE name = ?", (name,)).fetchone()
    return _row_to_account(row) if row else None


def get_account_by_email(conn: sqlite3.Connection, email: str) -> Optional[Account]:
    row = conn.execute("SELECT * FROM accounts WHERE email = ?", (email,)).fetchone()
    return _row_to_account(row) if row else None


def get_account_by_code(conn: sqlite3.Connection, code: str) -> Optional[Account]:
    row = conn.execute(
        "SELECT * FROM accounts WHERE activation_code = ?", (code,)
    ).fetchone()
    return _row_to_account(row) if row else None


def mark_validated(conn: sqlite3.Connection, account_id: int) -> None:
    """Validate an account and burn its activation code."""
    conn.execute(
        "UPDATE accounts SET validated = 1, activation_code = NULL WHERE id = ?",
        (account_id,),
    )


def delete_unvalidated(conn: sqlite3.Connection, created_before: int) -> int:
    """Delete accounts still unvalidated that were created before the cutoff."""
    cursor = conn.execute(
        "DELETE FROM accounts WHERE validated = 0 AND created_at <= ?",
        (created_before,),
    )
    return cursor.rowcount
