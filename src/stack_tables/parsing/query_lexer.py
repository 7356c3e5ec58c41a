"""Lexer for the postfix query language."""

import ply.lex as lex

from stack_tables.errors import CompileError, CompileErrorKind


class QueryLexer:
    """Lexer splitting query text into words and quoted strings.

    Parentheses only mark multi-line queries for the REPL, so they are
    dropped from every token, quoted or not.
    """

    tokens = [
        "STRING",
        "WORD",
    ]

    # Ignored characters, including the grouping parentheses
    t_ignore = " \t\r\f\v()"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r'"[^"]*"'
        t.value = t.value[1:-1].replace("(", "").replace(")", "")
        return t

    def t_WORD(self, t: lex.LexToken) -> lex.LexToken | None:
        r'[^\s"()][^\s]*'
        t.value = t.value.replace("(", "").replace(")", "")
        if not t.value:
            return None
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_error(self, t: lex.LexToken) -> None:
        if t.value[0] != '"':
            # Whitespace outside t_ignore, e.g. a non-breaking space
            t.lexer.skip(1)
            return
        raise CompileError(
            CompileErrorKind.UNCLOSED_STRING,
            f"unclosed string literal in a query at position {t.lexpos}",
        )

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
