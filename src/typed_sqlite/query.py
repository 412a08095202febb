"""SQL text generation for table operations.

Every builder is a pure function of its arguments. Option combinations are
validated here; predicate text inside ``Where`` is passed through verbatim
and left for the storage engine to judge. Values are never inlined: data
is always bound through ``?`` placeholders.
"""

from __future__ import annotations

from collections.abc import Sequence

from typed_sqlite.errors import QueryConstraintError
from typed_sqlite.options import (
    AutoIncrement,
    Distinct,
    OptionLike,
    OptionSequence,
    OrderBy,
    Where,
)
from typed_sqlite.parsing import is_identifier, quote_identifier
from typed_sqlite.types import Column, SqlType


def _check_identifier(name: str, operation: str, what: str) -> None:
    if not is_identifier(name):
        raise QueryConstraintError(f"{name!r} is not a valid {what}", operation)


def _check_predicate(option: Where, operation: str) -> str:
    if not isinstance(option.predicate, str) or not option.predicate.strip():
        raise QueryConstraintError("Where needs a non-empty predicate", operation, option)
    return option.predicate


def _render_predicates(predicates: list[str]) -> str:
    """Join predicates conjunctively; a lone predicate is rendered as given."""
    if len(predicates) == 1:
        return predicates[0]
    return " AND ".join(f"({p})" for p in predicates)


def resolve_auto_increment(
    columns: Sequence[Column], options: OptionLike | None = None
) -> str | None:
    """Return the column an AutoIncrement option applies to, if any.

    Raises:
        QueryConstraintError: If AutoIncrement is given more than once, or
            names a column that is missing or not INTEGER, or any other
            option kind is present.
    """
    operation = "create"
    found: str | None = None
    for option in OptionSequence.of(options):
        if not isinstance(option, AutoIncrement):
            raise QueryConstraintError(
                f"{type(option).__name__} is not allowed when creating a table",
                operation,
                option,
            )
        if found is not None:
            raise QueryConstraintError(
                "AutoIncrement can be used only once per table", operation, option
            )

        if option.column is None:
            candidates = [c.name for c in columns if c.sql_type is SqlType.INTEGER]
            if not candidates:
                raise QueryConstraintError(
                    "AutoIncrement needs an INTEGER column", operation, option
                )
            found = candidates[0]
        else:
            column = next((c for c in columns if c.name == option.column), None)
            if column is None or column.sql_type is not SqlType.INTEGER:
                raise QueryConstraintError(
                    f"AutoIncrement column {option.column!r} is not an INTEGER column",
                    operation,
                    option,
                )
            found = column.name
    return found


def create_query(
    table_name: str, columns: Sequence[Column], options: OptionLike | None = None
) -> str:
    """Render CREATE TABLE IF NOT EXISTS for the given columns.

    Example:
        >>> create_query("persons", [Column("id", SqlType.INTEGER), Column("name", SqlType.TEXT)])
        'CREATE TABLE IF NOT EXISTS "persons" ("id" INTEGER, "name" TEXT)'
    """
    _check_identifier(table_name, "create", "table name")
    if not columns:
        raise QueryConstraintError("a table needs at least one column", "create")

    auto_column = resolve_auto_increment(columns, options)
    definitions = []
    for column in columns:
        _check_identifier(column.name, "create", "column name")
        if column.name == auto_column:
            definitions.append(f"{quote_identifier(column.name)} INTEGER PRIMARY KEY AUTOINCREMENT")
        else:
            definitions.append(column.render())
    return f"CREATE TABLE IF NOT EXISTS {quote_identifier(table_name)} ({', '.join(definitions)})"


def select_query(
    table_name: str,
    projection: Sequence[str] = (),
    options: OptionLike | None = None,
    *,
    order_column: str | None = None,
) -> str:
    """Render a SELECT over all columns, or over ``projection`` when non-empty.

    Distinct and OrderBy may each appear once. Several Where options are
    combined with AND. AutoIncrement is ignored. An OrderBy without a column
    orders by the first projected column, then ``order_column``, then the
    first result column.
    """
    operation = "select"
    _check_identifier(table_name, operation, "table name")
    for name in projection:
        _check_identifier(name, operation, "column name")

    distinct: Distinct | None = None
    order: OrderBy | None = None
    predicates: list[str] = []

    for option in OptionSequence.of(options):
        if isinstance(option, Distinct):
            if distinct is not None:
                raise QueryConstraintError(
                    "Distinct can be used only once per query", operation, option
                )
            distinct = option
        elif isinstance(option, OrderBy):
            if order is not None:
                raise QueryConstraintError(
                    "OrderBy can be used only once per query", operation, option
                )
            if option.column is not None:
                _check_identifier(option.column, operation, "column name")
            order = option
        elif isinstance(option, Where):
            predicates.append(_check_predicate(option, operation))
        elif isinstance(option, AutoIncrement):
            continue
        else:
            raise QueryConstraintError(
                f"unsupported option {type(option).__name__}", operation, option
            )

    columns = ", ".join(map(quote_identifier, projection)) if projection else "*"
    query = f"SELECT {'DISTINCT ' if distinct else ''}{columns} FROM {quote_identifier(table_name)}"

    if predicates:
        query += f" WHERE {_render_predicates(predicates)}"

    if order is not None:
        column = order.column or (projection[0] if projection else order_column) or None
        if column is None:
            key = "1"
        else:
            _check_identifier(column, operation, "column name")
            key = quote_identifier(column)
        query += f" ORDER BY {key} {'DESC' if order.descending else 'ASC'}"

    return query


def insert_query(table_name: str, columns: Sequence[Column]) -> str:
    """Render a parameterized INSERT with one placeholder per column."""
    _check_identifier(table_name, "insert", "table name")
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {quote_identifier(table_name)} VALUES ({placeholders})"


def _single_where(options: OptionLike | None, operation: str) -> str:
    """Return the predicate of the one and only Where option."""
    wheres: list[Where] = []
    for option in OptionSequence.of(options):
        if not isinstance(option, Where):
            raise QueryConstraintError(
                f"only Where is allowed, got {type(option).__name__}", operation, option
            )
        wheres.append(option)

    if not wheres:
        raise QueryConstraintError("a Where option is required", operation)
    if len(wheres) > 1:
        raise QueryConstraintError(
            f"exactly one Where is allowed, got {len(wheres)}", operation, wheres[1]
        )
    return _check_predicate(wheres[0], operation)


def update_query(
    table_name: str, columns: Sequence[Column], options: OptionLike | None
) -> str:
    """Render a parameterized UPDATE of every column, filtered by one Where."""
    operation = "update"
    _check_identifier(table_name, operation, "table name")
    predicate = _single_where(options, operation)
    assignments = ", ".join(f"{quote_identifier(c.name)} = ?" for c in columns)
    return f"UPDATE {quote_identifier(table_name)} SET {assignments} WHERE {predicate}"


def delete_query(table_name: str, options: OptionLike | None) -> str:
    """Render a DELETE filtered by one Where."""
    operation = "delete"
    _check_identifier(table_name, operation, "table name")
    predicate = _single_where(options, operation)
    return f"DELETE FROM {quote_identifier(table_name)} WHERE {predicate}"


def count_query(table_name: str, options: OptionLike | None = None) -> str:
    """Render SELECT COUNT(*), optionally filtered by Where options."""
    operation = "count"
    _check_identifier(table_name, operation, "table name")

    predicates: list[str] = []
    for option in OptionSequence.of(options):
        if isinstance(option, Where):
            predicates.append(_check_predicate(option, operation))
        elif not isinstance(option, AutoIncrement):
            raise QueryConstraintError(
                f"only Where is allowed, got {type(option).__name__}", operation, option
            )

    query = f"SELECT COUNT(*) FROM {quote_identifier(table_name)}"
    if predicates:
        query += f" WHERE {_render_predicates(predicates)}"
    return query

