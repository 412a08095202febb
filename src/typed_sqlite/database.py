"""Database handle that owns the SQLite connection."""

from __future__ import annotations

from pathlib import Path
from typing import Any, TypeVar

from typed_sqlite.options import OptionLike
from typed_sqlite.storage import MEMORY_PATH, SqliteStorage
from typed_sqlite.table import Table

T = TypeVar("T")


class Db:
    """Owns one connection and hands out typed tables.

    Clones share the connection; it stays open while any clone is alive (or
    until ``close`` is called). Tables never keep it alive.
    """

    def __init__(self, storage: SqliteStorage) -> None:
        self._storage = storage

    @classmethod
    def open(cls, path: Path | str, **connect_kwargs: Any) -> Db:
        """Open (or create) a database file.

        Args:
            path: Path to the database file.
            **connect_kwargs: Extra arguments for ``sqlite3.connect``
                (``timeout``, ``detect_types``, ...).

        Raises:
            BackendError: If the file cannot be opened.
        """
        return cls(SqliteStorage(Path(path), **connect_kwargs))

    @classmethod
    def mem(cls) -> Db:
        """Open a private in-memory database."""
        return cls(SqliteStorage(MEMORY_PATH))

    @property
    def storage(self) -> SqliteStorage:
        """Return the storage engine shared by this handle and its clones."""
        return self._storage

    @property
    def closed(self) -> bool:
        """Return whether the connection has been closed."""
        return self._storage.closed

    def clone(self) -> Db:
        """Return another handle on the same connection."""
        return type(self)(self._storage)

    __copy__ = clone

    def table(
        self,
        record_type: type[T],
        name: str | None = None,
        options: OptionLike | None = None,
    ) -> Table[T]:
        """Get a table for a record type, creating it if needed.

        Args:
            record_type: Record type stored in the table.
            name: Table name; defaults to the record type's name in lower case.
            options: Table creation options (AutoIncrement).

        Returns:
            A Table bound to this database.
        """
        if name is None:
            name = record_type.__name__.lower()
        return Table(record_type, name, self, options)

    def close(self) -> None:
        """Close the connection for this handle and every clone."""
        self._storage.close()

    def __enter__(self) -> Db:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Db({self._storage.path!r})"
