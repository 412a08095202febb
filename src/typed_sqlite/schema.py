"""Schema inference for record types.

A record type is any class whose instances convert to and from an ordered
field -> value mapping (its *shape*):

* dataclasses, using field declaration order;
* ``typing.NamedTuple`` classes, using ``_fields`` order;
* any class implementing ``to_fields(self)`` and a ``from_fields(cls, fields)``
  classmethod, using the order ``to_fields`` returns.

The record type must be constructible with no arguments. That default
instance drives column type inference and fills the fields a partial select
does not return.
"""

from __future__ import annotations

import dataclasses
import json
import typing
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from typed_sqlite.errors import SchemaError
from typed_sqlite.parsing import is_identifier
from typed_sqlite.types import (
    Column,
    SqlType,
    class_for_annotation,
    is_named_tuple,
    sql_type_for_class,
    unwrap_optional,
)


def to_fields(record: Any) -> dict[str, Any]:
    """Convert a record instance to its ordered field -> value mapping.

    Raises:
        SchemaError: If the value is not record-shaped.
    """
    to_fields_method = getattr(record, "to_fields", None)
    if callable(to_fields_method) and not isinstance(record, type):
        fields = to_fields_method()
        if not isinstance(fields, Mapping):
            raise SchemaError(
                f"{type(record).__name__}.to_fields() returned "
                f"{type(fields).__name__}, expected a mapping",
                type(record),
            )
        return dict(fields)
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}
    if is_named_tuple(type(record)):
        return dict(record._asdict())
    raise SchemaError(
        f"Value of type {type(record).__name__} does not convert to a field mapping",
        type(record),
    )


def from_fields(record_type: type, fields: Mapping[str, Any]) -> Any:
    """Build a record instance from a field -> value mapping."""
    from_fields_method = getattr(record_type, "from_fields", None)
    if callable(from_fields_method):
        return from_fields_method(dict(fields))

    if dataclasses.is_dataclass(record_type):
        init_values = {}
        late_values = {}
        for f in dataclasses.fields(record_type):
            if f.name not in fields:
                continue
            if f.init:
                init_values[f.name] = fields[f.name]
            else:
                late_values[f.name] = fields[f.name]
        record = record_type(**init_values)
        for name, value in late_values.items():
            object.__setattr__(record, name, value)
        return record

    if is_named_tuple(record_type):
        return record_type(**{k: v for k, v in fields.items() if k in record_type._fields})

    raise SchemaError(f"Cannot build {record_type.__name__} from a field mapping", record_type)


def _json_default(value: Any) -> Any:
    """Serialize nested records and byte strings inside JSON payloads."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_fields(value)
    if is_named_tuple(type(value)):
        return value._asdict()
    if isinstance(value, (bytes, bytearray)):
        return list(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not serializable")


@dataclass(frozen=True, eq=False)
class RecordSchema:
    """Columns and encode/decode rules inferred for one record type."""

    record_type: type
    columns: tuple[Column, ...]
    # Python class of each field, used to restore values read back from SQL
    field_classes: dict[str, type | None]
    # Resolved annotation of each field, used to restore nested values
    field_hints: dict[str, Any]

    @classmethod
    def infer(cls, record_type: type) -> RecordSchema:
        """Infer the table schema of a record type from its default value.

        Raises:
            SchemaError: If the type has no default instance, is not
                record-shaped, or a field's SQL type cannot be determined.
        """
        if not isinstance(record_type, type):
            raise SchemaError(f"Expected a record type, got {record_type!r}", record_type)

        try:
            default = record_type()
        except TypeError as e:
            raise SchemaError(
                f"{record_type.__name__} cannot be constructed without arguments: {e}",
                record_type,
            ) from e

        shape = to_fields(default)
        if not shape:
            raise SchemaError(f"{record_type.__name__} has no fields", record_type)

        hints = _type_hints(record_type)
        columns: list[Column] = []
        field_classes: dict[str, type | None] = {}

        for name, value in shape.items():
            if not is_identifier(name):
                raise SchemaError(
                    f"Field '{name}' of {record_type.__name__} is not a valid column name",
                    record_type,
                )

            if value is None:
                field_class = class_for_annotation(hints.get(name))
            else:
                field_class = type(value)

            sql_type = sql_type_for_class(field_class)
            if sql_type is None:
                found = "None" if field_class is None else field_class.__name__
                raise SchemaError(
                    f"Cannot infer SQL type for field '{name}' of "
                    f"{record_type.__name__} (type {found})",
                    record_type,
                )

            columns.append(Column(name, sql_type))
            field_classes[name] = field_class

        return cls(
            record_type=record_type,
            columns=tuple(columns),
            field_classes=field_classes,
            field_hints={name: hints.get(name) for name in field_classes},
        )

    @property
    def column_names(self) -> list[str]:
        """Return column names in table order."""
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Column | None:
        """Get a column by name."""
        for c in self.columns:
            if c.name == name:
                return c
        return None

    def encode(self, record: Any) -> list[Any]:
        """Return bound parameter values for a record, in column order."""
        if not isinstance(record, self.record_type):
            raise SchemaError(
                f"Expected {self.record_type.__name__}, got {type(record).__name__}",
                self.record_type,
            )
        shape = to_fields(record)
        return [self._encode_value(c, shape.get(c.name)) for c in self.columns]

    def _encode_value(self, column: Column, value: Any) -> Any:
        if value is None:
            return None
        if column.sql_type is SqlType.BLOB:
            if isinstance(value, (bytes, bytearray)):
                return bytes(value)
            return json.dumps(list(value), default=_json_default).encode("utf-8")
        if column.sql_type is SqlType.TEXT and not isinstance(value, str):
            if not isinstance(value, Mapping):
                # JSON would otherwise write a named tuple as an array
                value = to_fields(value)
            return json.dumps(value, default=_json_default)
        if column.sql_type is SqlType.BOOLEAN:
            return int(bool(value))
        return value

    def decode(self, row: Mapping[str, Any] | Sequence[Any], names: Sequence[str] | None = None) -> Any:
        """Build a record from a result row.

        Fields missing from the row keep the record type's default value, so
        a row from a partial select does not round-trip to the stored record.

        Args:
            row: A mapping of column name to value, or a positional sequence.
            names: Column names for a positional row; defaults to all
                columns in table order.
        """
        if isinstance(row, Mapping):
            values = dict(row)
        elif hasattr(row, "keys"):
            # sqlite3.Row is neither a Mapping nor a plain sequence
            values = {k: row[k] for k in row.keys()}
        else:
            values = dict(zip(names if names is not None else self.column_names, row))

        shape = to_fields(self.record_type())
        for name, value in values.items():
            if name in self.field_classes:
                shape[name] = self._decode_value(name, value)
        return from_fields(self.record_type, shape)

    def _decode_value(self, name: str, value: Any) -> Any:
        if value is None:
            return None
        field_class = self.field_classes[name]
        if field_class is None:
            return value

        if field_class is bool:
            return bool(value)
        if issubclass(field_class, (bytes, bytearray)):
            return field_class(value)
        if issubclass(field_class, str) and isinstance(value, str):
            return value
        if dataclasses.is_dataclass(field_class) or issubclass(field_class, (list, tuple, dict)):
            return _restore(json.loads(value), self.field_hints.get(name), field_class)
        if issubclass(field_class, float):
            return float(value)
        return value

    def restore(self, data: Mapping[str, Any]) -> Any:
        """Build a record from its JSON object form, restoring nested values.

        Fields missing from ``data`` keep the record type's default value.
        """
        shape = to_fields(self.record_type())
        for name, value in data.items():
            if name in self.field_classes:
                shape[name] = _restore(value, self.field_hints.get(name), self.field_classes[name])
        return from_fields(self.record_type, shape)


# Schemas of record types found nested inside fields; None when the type
# cannot be inferred and its annotations are used instead
_nested_schemas: dict[type, RecordSchema | None] = {}


def _nested_schema(record_type: type) -> RecordSchema | None:
    if record_type not in _nested_schemas:
        try:
            _nested_schemas[record_type] = RecordSchema.infer(record_type)
        except SchemaError:
            _nested_schemas[record_type] = None
    return _nested_schemas[record_type]


def _restore_record(record_type: type, data: Any) -> Any:
    if is_named_tuple(record_type) and isinstance(data, list):
        # Named tuples below the top level are written as JSON arrays
        data = dict(zip(record_type._fields, data))
    if not isinstance(data, Mapping):
        return data

    schema = _nested_schema(record_type)
    if schema is not None:
        return schema.restore(data)
    hints = _type_hints(record_type)
    return from_fields(record_type, {k: _restore(v, hints.get(k)) for k, v in data.items()})


def _restore(data: Any, annotation: Any, cls: type | None = None) -> Any:
    """Rebuild a Python value from its JSON form.

    Args:
        data: Value as returned by ``json.loads``.
        annotation: Type annotation of the value, if known. Element types of
            ``list[...]``, ``tuple[...]`` and ``dict[..., ...]`` are restored
            recursively.
        cls: Class of the value; defaults to the class of ``annotation``.
    """
    if data is None:
        return None
    if cls is None:
        cls = class_for_annotation(annotation)
    if cls is None:
        return data
    if dataclasses.is_dataclass(cls) or is_named_tuple(cls):
        return _restore_record(cls, data)

    args = typing.get_args(unwrap_optional(annotation))
    if issubclass(cls, (list, tuple)) and isinstance(data, list):
        if issubclass(cls, tuple) and len(args) == 2 and args[1] is Ellipsis:
            hints = [args[0]] * len(data)
        elif issubclass(cls, tuple):
            hints = list(args) if len(args) == len(data) else [None] * len(data)
        else:
            hints = [args[0] if args else None] * len(data)
        return cls(_restore(item, hint) for item, hint in zip(data, hints))
    if issubclass(cls, dict) and isinstance(data, Mapping):
        value_hint = args[1] if len(args) == 2 else None
        return cls((key, _restore(value, value_hint)) for key, value in data.items())
    if issubclass(cls, (bytes, bytearray)) and isinstance(data, list):
        return cls(data)
    if issubclass(cls, float) and isinstance(data, int):
        return cls(data)
    return data


def infer_columns(record_type: type) -> tuple[Column, ...]:
    """Return the columns of a record type, in field order.

    Raises:
        SchemaError: If the record type is not record-shaped.
    """
    return RecordSchema.infer(record_type).columns


def _type_hints(record_type: type) -> dict[str, Any]:
    """Return resolved annotations, or an empty dict if they cannot be resolved."""
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError):
        return {}
