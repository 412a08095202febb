"""Lexer for SQL identifiers and column lists."""

import ply.lex as lex


class IdentifierLexer:
    """Lexer for table names, field names and comma-separated column lists.

    Only plain identifiers are accepted: quotes, dots and anything else that
    could change the shape of a generated statement are rejected. SQL
    keywords such as ``order`` or ``key`` are ordinary identifiers here,
    because every generated statement quotes the names it uses.
    """

    # Token list
    tokens = [
        "IDENTIFIER",
        "COMMA",
    ]

    t_IDENTIFIER = r"[a-zA-Z_][a-zA-Z0-9_]*"
    t_COMMA = r","

    # Ignored characters
    t_ignore = " \t\n"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens


_lexer: IdentifierLexer | None = None


def _get_lexer() -> IdentifierLexer:
    global _lexer
    if _lexer is None:
        _lexer = IdentifierLexer()
        _lexer.build()
    return _lexer


def is_identifier(name: str) -> bool:
    """Check that name is a single plain SQL identifier."""
    if not isinstance(name, str) or not name:
        return False
    try:
        tokens = _get_lexer().tokenize(name)
    except SyntaxError:
        return False
    return len(tokens) == 1 and tokens[0].type == "IDENTIFIER" and tokens[0].value == name


def quote_identifier(name: str) -> str:
    """Quote a table or column name for use in a statement.

    Example:
        >>> quote_identifier("order")
        '"order"'
    """
    return '"' + name.replace('"', '""') + '"'


def parse_column_list(text: str) -> list[str]:
    """Split a column list such as ``"id, name"`` into identifiers.

    Raises:
        SyntaxError: If the text is not a comma-separated list of identifiers.
    """
    tokens = _get_lexer().tokenize(text)
    if not tokens:
        return []

    names: list[str] = []
    expect_name = True
    for tok in tokens:
        if expect_name:
            if tok.type != "IDENTIFIER":
                raise SyntaxError(f"Expected column name, got '{tok.value}' at position {tok.lexpos}")
            names.append(tok.value)
        elif tok.type != "COMMA":
            raise SyntaxError(f"Expected ',', got '{tok.value}' at position {tok.lexpos}")
        expect_name = not expect_name

    if expect_name:
        raise SyntaxError("Column list ends with ','")
    return names
