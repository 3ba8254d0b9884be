"""Database layer package.

Public re-exports so callers can write::

    from lemma.db import GraphStore, get_connection, init_db
"""

from lemma.db.connection import get_connection
from lemma.db.migrations import init_db
from lemma.db.store import GraphStore, QueryBudget

__all__ = ["get_connection", "init_db", "GraphStore", "QueryBudget"]
