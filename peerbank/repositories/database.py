"""SQLite connection handling shared by the repositories."""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator

from peerbank.models.exceptions import StoreError

logger = logging.getLogger("peerbank.database")


class Database:
    """
    Owns the single SQLite connection used by every repository.

    The connection runs in autocommit mode; multi-statement units of work go
    through ``transaction()``, which is re-entrant so repository methods can
    be composed inside a wider unit without committing early.
    """

    def __init__(self, path: str = ":memory:"):
        """
        Open the database.

        Args:
            path: Filesystem path of the database, or ":memory:"
        """
        self.path = path
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open database {path}: {exc}") from exc
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Run statements without opening a write transaction."""
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                raise StoreError(f"Database read failed: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run statements as one all-or-nothing unit.

        Commits when the outermost block exits normally; any exception rolls
        back every statement issued since the outermost BEGIN. sqlite3
        errors are re-raised as StoreError.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self._conn
                finally:
                    self._depth -= 1
                return

            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StoreError(f"Cannot begin transaction: {exc}") from exc

            self._depth = 1
            try:
                yield self._conn
            except sqlite3.Error as exc:
                self._rollback()
                logger.error("Rolled back transaction after database error: %s", exc)
                raise StoreError(f"Database write failed: {exc}") from exc
            except BaseException:
                self._rollback()
                raise
            else:
                try:
                    self._conn.execute("COMMIT")
                except sqlite3.Error as exc:
                    self._rollback()
                    raise StoreError(f"Commit failed: {exc}") from exc
            finally:
                self._depth = 0

    def _rollback(self) -> None:
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")

    def close(self) -> None:
        with self._lock:
            self._conn.close()
