"""Shared fixtures.

Every test gets a fresh in-memory SQLite database so tests are fast,
isolated and never touch ``~/.lemma_data``.
"""

from __future__ import annotations

import sqlite3
from typing import Callable, Generator

import pytest

from lemma.accounts.passwords import hash_password
from lemma.db import GraphStore, get_connection, init_db
from lemma.db.accounts import insert_account
from lemma.db.models import Actor
from lemma.graph.codec import AddressCodec

TEST_PASSWORD = "correct horse"


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def store(conn: sqlite3.Connection) -> GraphStore:
    return GraphStore(conn)


@pytest.fixture()
def codec() -> AddressCodec:
    return AddressCodec(salt="test-salt")


@pytest.fixture()
def make_actor(store: GraphStore) -> Callable[..., Actor]:
    """Insert a validated account and return it as an :class:`Actor`."""

    def _make(name: str, email: str | None = None, validated: bool = True) -> Actor:
        email = email or f"{name}@example.com"
        with store.write() as c:
            account_id = insert_account(
                c,
                name,
                email,
                hash_password(TEST_PASSWORD, iterations=1000),
                activation_code=None,
                validated=validated,
            )
        return Actor(identity=account_id, name=name, email=email)

    return _make
