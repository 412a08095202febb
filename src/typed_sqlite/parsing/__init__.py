"""Parsing helpers for SQL identifiers."""

from typed_sqlite.parsing.identifier_lexer import (
    IdentifierLexer,
    is_identifier,
    parse_column_list,
    quote_identifier,
)

__all__ = [
    "IdentifierLexer",
    "is_identifier",
    "parse_column_list",
    "quote_identifier",
]
