"""Typed table handle bound to a record type."""

from __future__ import annotations

import logging
import weakref
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from typed_sqlite.errors import (
    BackendError,
    QueryConstraintError,
    ReferenceExpiredError,
    SchemaError,
)
from typed_sqlite.options import OptionLike, OptionSequence, Where
from typed_sqlite.parsing import is_identifier, parse_column_list
from typed_sqlite.query import (
    count_query,
    create_query,
    delete_query,
    insert_query,
    resolve_auto_increment,
    select_query,
    update_query,
)
from typed_sqlite.schema import RecordSchema
from typed_sqlite.types import Column

if TYPE_CHECKING:
    from typed_sqlite.database import Db
    from typed_sqlite.storage import Storage

log = logging.getLogger("typed_sqlite.table")

T = TypeVar("T")

WhereLike = Where | str | OptionSequence


class Table(Generic[T]):
    """CRUD access to one table whose rows are instances of a record type.

    A Table only holds a weak reference to the database it came from. Every
    operation fails with ReferenceExpiredError once that database has been
    closed or all of its Db handles have been dropped.
    """

    def __init__(
        self,
        record_type: type[T],
        name: str,
        db: Db,
        options: OptionLike | None = None,
    ) -> None:
        """Create the table if it does not exist yet.

        Args:
            record_type: Record type stored in the table.
            name: Table name.
            db: Database to create the table in.
            options: Table creation options (AutoIncrement).

        Raises:
            SchemaError: If the name or the record type cannot be mapped.
            QueryConstraintError: If the creation options are invalid.
            BackendError: If the engine rejects the CREATE statement.
        """
        if not is_identifier(name):
            raise SchemaError(f"{name!r} is not a valid table name", record_type)

        self._schema = RecordSchema.infer(record_type)
        self._name = name
        self._auto_column = resolve_auto_increment(self._schema.columns, options)
        self._create_sql = create_query(name, self._schema.columns, options)
        self._insert_sql = insert_query(name, self._schema.columns)
        self._storage_ref: weakref.ref[Storage] | None = None
        self.bind(db)

    @property
    def name(self) -> str:
        """Return the table name."""
        return self._name

    @property
    def record_type(self) -> type[T]:
        """Return the record type stored in this table."""
        return self._schema.record_type

    @property
    def columns(self) -> tuple[Column, ...]:
        """Return the inferred columns, in table order."""
        return self._schema.columns

    @property
    def auto_increment_column(self) -> str | None:
        """Return the auto-incrementing key column, if the table has one."""
        return self._auto_column

    def bind(self, db: Db) -> None:
        """Point this table at another database, creating the table there."""
        storage = db.storage
        if storage.closed:
            raise ReferenceExpiredError(f"Cannot bind table '{self._name}' to a closed database")
        storage.execute(self._create_sql)
        self._storage_ref = weakref.ref(storage)

    def _storage(self) -> Storage:
        """Resolve the database reference for one operation."""
        storage = self._storage_ref() if self._storage_ref is not None else None
        if storage is None or storage.closed:
            raise ReferenceExpiredError(
                f"The database of table '{self._name}' has been closed or dropped"
            )
        return storage

    def _insert_params(self, record: T) -> list[Any]:
        params = self._schema.encode(record)
        if self._auto_column is not None:
            index = self._schema.column_names.index(self._auto_column)
            # Let the engine assign the key
            if params[index] in (None, 0):
                params[index] = None
        return params

    def select(self, options: OptionLike | None = None) -> list[T]:
        """Return all rows matching the options, decoded into records."""
        sql = select_query(
            self._name, (), options, order_column=self._schema.columns[0].name
        )
        rows = self._storage().prepare(sql)
        return [self._schema.decode(row) for row in rows]

    def partial_select(
        self, columns: Sequence[str] | str, options: OptionLike | None = None
    ) -> list[T]:
        """Return matching rows with only some columns loaded.

        Columns that are not selected keep the record type's default value,
        so the returned records are not the stored records. Writing them
        back with ``update_one`` or ``insert_one`` overwrites the omitted
        fields with their defaults.

        Args:
            columns: Column names, as a list or a string such as ``"id, name"``.
            options: Query options.
        """
        if isinstance(columns, str):
            try:
                columns = parse_column_list(columns)
            except SyntaxError as e:
                raise QueryConstraintError(str(e), "select") from e

        unknown = [c for c in columns if self._schema.get_column(c) is None]
        if unknown:
            raise QueryConstraintError(
                f"unknown column(s) {', '.join(map(repr, unknown))} in table '{self._name}'",
                "select",
            )
        if not columns:
            return self.select(options)

        projection = list(columns)
        sql = select_query(self._name, projection, options)
        rows = self._storage().prepare(sql)
        return [self._schema.decode(row) for row in rows]

    def insert_one(self, record: T) -> None:
        """Insert a single record."""
        self._storage().execute(self._insert_sql, self._insert_params(record))

    def insert_many(self, records: Iterable[T]) -> int:
        """Insert records one statement at a time and return how many were inserted.

        Not atomic: if a record fails, the records before it stay inserted
        and the error is raised.
        """
        storage = self._storage()
        count = 0
        for record in records:
            try:
                storage.execute(self._insert_sql, self._insert_params(record))
            except BackendError as e:
                log.warning(
                    "insert_many into %s stopped at record %d: %s", self._name, count, e.message
                )
                raise BackendError(
                    f"insert_many stopped at record {count} ({count} inserted): {e.message}",
                    e.sql,
                ) from e
            count += 1
        return count

    @staticmethod
    def _where(where: WhereLike) -> OptionLike:
        if isinstance(where, str):
            return Where(where)
        return where

    def update_one(self, record: T, where: WhereLike) -> int:
        """Overwrite every column of the rows matching ``where`` with record.

        Returns:
            Number of rows updated.
        """
        sql = update_query(self._name, self._schema.columns, self._where(where))
        return self._storage().execute(sql, self._schema.encode(record))

    def update_many(self, records: Iterable[T], where: WhereLike) -> int:
        """Apply update_one for each record in turn and return the total rows updated.

        Not atomic: if a record fails, earlier updates stay applied.
        """
        sql = update_query(self._name, self._schema.columns, self._where(where))
        storage = self._storage()
        total = 0
        for index, record in enumerate(records):
            try:
                total += storage.execute(sql, self._schema.encode(record))
            except BackendError as e:
                log.warning(
                    "update_many on %s stopped at record %d: %s", self._name, index, e.message
                )
                raise BackendError(
                    f"update_many stopped at record {index}: {e.message}", e.sql
                ) from e
        return total

    def delete(self, where: WhereLike) -> int:
        """Delete all rows matching ``where`` and return how many were deleted."""
        sql = delete_query(self._name, self._where(where))
        return self._storage().execute(sql)

    def count_rows(self, where: WhereLike | None = None) -> int:
        """Return the number of rows, optionally only those matching ``where``."""
        sql = count_query(self._name, None if where is None else self._where(where))
        return int(self._storage().query_scalar(sql))

    def __repr__(self) -> str:
        return f"Table({self._name!r}, {self.record_type.__name__})"
