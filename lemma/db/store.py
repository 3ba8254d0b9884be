"""Transactional access to the graph store.

All reads and writes go through :class:`GraphStore` so that every request
sees one consistent transaction::

    with store.read(QueryBudget(timeout_ms=300)) as conn:
        ...                     # always rolled back, bounded by the budget

    with store.write() as conn:
        ...                     # committed on success, rolled back on error

A single connection is shared by the whole process, so transactions are
serialised with a re-entrant lock.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from lemma.errors import InternalError, RequestCancelled, StoreTimeout

logger = logging.getLogger(__name__)

# Number of SQLite VM instructions between two budget checks.
_PROGRESS_INTERVAL = 1000


class QueryBudget:
    """Deadline plus cancellation flag for one read transaction.

    A ``timeout_ms`` of 0 means no deadline.  :meth:`cancel` may be called
    from any thread (typically when the HTTP client disconnects).
    """

    def __init__(self, timeout_ms: int = 0) -> None:
        self.timeout_ms = timeout_ms
        self._deadline = time.monotonic() + timeout_ms / 1000.0 if timeout_ms > 0 else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def exhausted(self) -> bool:
        return self.cancelled or self.expired

    def check(self) -> None:
        """Raise if the budget is spent."""
        if self.cancelled:
            raise RequestCancelled()
        if self.expired:
            raise StoreTimeout()


class GraphStore:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._lock = threading.RLock()

    @contextmanager
    def read(self, budget: Optional[QueryBudget] = None) -> Iterator[sqlite3.Connection]:
        """Open a read transaction, discarded when the block exits."""
        budget = budget or QueryBudget()
        with self._lock:
            budget.check()
            self.conn.set_progress_handler(
                lambda: 1 if budget.exhausted() else 0, _PROGRESS_INTERVAL
            )
            try:
                self.conn.execute("BEGIN")
                yield self.conn
                budget.check()
            except sqlite3.OperationalError as exc:
                # An interrupted statement surfaces as OperationalError.
                if budget.exhausted():
                    budget.check()
                raise self._internal(exc) from exc
            except sqlite3.Error as exc:
                raise self._internal(exc) from exc
            finally:
                self.conn.set_progress_handler(None, _PROGRESS_INTERVAL)
                if self.conn.in_transaction:
                    self.conn.execute("ROLLBACK")

    @contextmanager
    def write(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction, committed only if the block succeeds."""
        with self._lock:
            try:
                self.conn.execute("BEGIN IMMEDIATE")
                try:
                    yield self.conn
                except BaseException:
                    self.conn.execute("ROLLBACK")
                    raise
                self.conn.execute("COMMIT")
            except sqlite3.Error as exc:
                if self.conn.in_transaction:
                    self.conn.execute("ROLLBACK")
                raise self._internal(exc) from exc

    @staticmethod
    def _internal(exc: sqlite3.Error) -> InternalError:
        logger.error("graph store error: %s", exc, exc_info=exc)
        return InternalError()
