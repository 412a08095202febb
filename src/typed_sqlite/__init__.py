"""Typed SQLite - typed tables over a single SQLite database."""

from typed_sqlite.database import Db
from typed_sqlite.errors import (
    BackendError,
    QueryConstraintError,
    ReferenceExpiredError,
    SchemaError,
    TypedSqliteError,
)
from typed_sqlite.options import (
    AutoIncrement,
    Distinct,
    OptionSequence,
    OrderBy,
    QueryOption,
    Where,
    combine,
)
from typed_sqlite.schema import RecordSchema, infer_columns
from typed_sqlite.table import Table
from typed_sqlite.types import Column, SqlType

__all__ = [
    # Main API
    "Db",
    "Table",
    # Query options
    "QueryOption",
    "AutoIncrement",
    "Distinct",
    "Where",
    "OrderBy",
    "OptionSequence",
    "combine",
    # Schema
    "Column",
    "SqlType",
    "RecordSchema",
    "infer_columns",
    # Errors
    "TypedSqliteError",
    "SchemaError",
    "QueryConstraintError",
    "ReferenceExpiredError",
    "BackendError",
]

__version__ = "0.1.0"
