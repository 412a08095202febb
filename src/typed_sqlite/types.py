"""Column and SQL type definitions for typed_sqlite."""

from __future__ import annotations

import dataclasses
import types
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any

from typed_sqlite.parsing import quote_identifier


class SqlType(Enum):
    """Column storage types understood by the query builder."""

    INTEGER = "INTEGER"
    REAL = "REAL"
    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    BLOB = "BLOB"


# Mapping from Python scalar types to SQL types. Order matters: bool is a
# subclass of int and must be matched first.
PYTHON_TYPE_MAP: tuple[tuple[type, SqlType], ...] = (
    (bool, SqlType.BOOLEAN),
    (int, SqlType.INTEGER),
    (float, SqlType.REAL),
    (str, SqlType.TEXT),
    (bytes, SqlType.BLOB),
    (bytearray, SqlType.BLOB),
    (list, SqlType.BLOB),
    (tuple, SqlType.BLOB),
    (dict, SqlType.TEXT),
)


@dataclass(frozen=True)
class Column:
    """A single table column derived from a record field."""

    name: str
    sql_type: SqlType

    def render(self) -> str:
        """Return the column definition as used in CREATE TABLE."""
        return f"{quote_identifier(self.name)} {self.sql_type.value}"


def sql_type_for_value(value: Any) -> SqlType | None:
    """Return the SQL type for a field value, or None if it has no mapping."""
    return sql_type_for_class(type(value))


def sql_type_for_class(cls: Any) -> SqlType | None:
    """Return the SQL type for a Python class, or None if it has no mapping."""
    if not isinstance(cls, type):
        return None
    # Nested records are stored as serialized TEXT, like plain dicts
    if dataclasses.is_dataclass(cls) or is_named_tuple(cls):
        return SqlType.TEXT
    for py_type, sql_type in PYTHON_TYPE_MAP:
        if issubclass(cls, py_type):
            return sql_type
    return None


def unwrap_optional(annotation: Any) -> Any:
    """Return X for ``Optional[X]`` or ``X | None``; other annotations are returned as is.

    Unions of several concrete types resolve to None.
    """
    origin = typing.get_origin(annotation)
    if origin is typing.Union or isinstance(annotation, types.UnionType):
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(members) != 1:
            return None
        return unwrap_optional(members[0])
    return annotation


def class_for_annotation(annotation: Any) -> type | None:
    """Resolve an annotation such as ``int | None`` or ``list[str]`` to a class.

    Optional annotations resolve to their single non-None member. Unions of
    several concrete types resolve to None.
    """
    annotation = unwrap_optional(annotation)
    if annotation is None:
        return None

    origin = typing.get_origin(annotation)
    if origin is not None:
        annotation = origin
    return annotation if isinstance(annotation, type) else None


def is_named_tuple(cls: Any) -> bool:
    """Check whether cls is a ``typing.NamedTuple`` / ``collections.namedtuple`` class."""
    return isinstance(cls, type) and issubclass(cls, tuple) and hasattr(cls, "_fields")
