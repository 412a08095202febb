"""SQLite storage engine used by Db and Table."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any, Protocol

from typed_sqlite.errors import BackendError

log = logging.getLogger("typed_sqlite.storage")

MEMORY_PATH = ":memory:"


class Storage(Protocol):
    """Capabilities a storage engine must provide."""

    @property
    def closed(self) -> bool: ...

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int: ...

    def prepare(self, sql: str, params: Sequence[Any] = ()) -> Iterator[Any]: ...

    def query_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any: ...

    def close(self) -> None: ...


class SqliteStorage:
    """Owns a single ``sqlite3`` connection.

    The connection runs in autocommit mode: every statement is committed as
    soon as it completes, and nothing groups statements into a transaction.
    """

    def __init__(self, path: Path | str = MEMORY_PATH, **connect_kwargs: Any) -> None:
        """Open a connection.

        Args:
            path: Database file, or ``":memory:"`` for an in-memory database.
            **connect_kwargs: Extra arguments for ``sqlite3.connect``.

        Raises:
            BackendError: If the database cannot be opened.
        """
        self.path = str(path)
        connect_kwargs.setdefault("isolation_level", None)
        try:
            self._con: sqlite3.Connection | None = sqlite3.connect(self.path, **connect_kwargs)
        except sqlite3.Error as e:
            raise BackendError(f"Cannot open database '{self.path}': {e}") from e
        self._con.row_factory = sqlite3.Row
        log.info("Opened database %s", self.path)

    @property
    def closed(self) -> bool:
        """Return whether the connection has been closed."""
        return self._con is None

    def _connection(self) -> sqlite3.Connection:
        if self._con is None:
            raise BackendError(f"Database '{self.path}' is closed")
        return self._con

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute a statement and return the number of affected rows."""
        con = self._connection()
        log.debug("execute: %s (%d params)", sql, len(params))
        try:
            cursor = con.execute(sql, tuple(params))
        except (sqlite3.Error, OverflowError) as e:
            raise BackendError(str(e), sql) from e
        return max(cursor.rowcount, 0)

    def prepare(self, sql: str, params: Sequence[Any] = ()) -> Iterator[sqlite3.Row]:
        """Run a query and return a single-pass iterator over its rows."""
        con = self._connection()
        log.debug("prepare: %s (%d params)", sql, len(params))
        try:
            cursor = con.execute(sql, tuple(params))
        except (sqlite3.Error, OverflowError) as e:
            raise BackendError(str(e), sql) from e
        return self._iter_rows(cursor, sql)

    @staticmethod
    def _iter_rows(cursor: sqlite3.Cursor, sql: str) -> Iterator[sqlite3.Row]:
        try:
            yield from cursor
        except (sqlite3.Error, OverflowError) as e:
            raise BackendError(str(e), sql) from e
        finally:
            cursor.close()

    def query_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Run a query and return the first column of its first row."""
        con = self._connection()
        log.debug("query_scalar: %s", sql)
        try:
            row = con.execute(sql, tuple(params)).fetchone()
        except (sqlite3.Error, OverflowError) as e:
            raise BackendError(str(e), sql) from e
        return None if row is None else row[0]

    def close(self) -> None:
        """Close the connection. Closing twice is a no-op."""
        if self._con is None:
            return
        self._con.close()
        self._con = None
        log.info("Closed database %s", self.path)

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"SqliteStorage({self.path!r}, {state})"
