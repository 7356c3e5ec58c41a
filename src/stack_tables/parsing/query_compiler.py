"""Compiler turning postfix query text into a sequence of operations."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from stack_tables.parsing.query_lexer import QueryLexer
from stack_tables.types import INT_MAX, INT_MIN, Value, format_value, parse_type_name


class OpKind(Enum):
    """Kinds of compiled operations."""

    PUSH = "push"
    SELECT = "select"
    INSERT = "insert"
    DELETE = "delete"
    FILTER = "filter"
    CREATE = "create"
    DROP = "drop"
    AND = "and"
    OR = "or"
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS = "<"
    MORE = ">"


# Operator spellings; every OpKind except PUSH
OPERATORS: dict[str, OpKind] = {kind.value: kind for kind in OpKind if kind is not OpKind.PUSH}

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class Operation:
    """One compiled unit of a query: a pushed value or a named operator."""

    kind: OpKind
    value: Value | None = None

    @classmethod
    def push(cls, value: Value) -> Operation:
        return cls(OpKind.PUSH, value)

    @classmethod
    def op(cls, kind: OpKind) -> Operation:
        return cls(kind)

    def __str__(self) -> str:
        if self.kind is OpKind.PUSH:
            return format_value(self.value)  # type: ignore[arg-type]
        return self.kind.value


def parse_integer(word: str) -> int | None:
    """Parse a signed 32-bit integer literal, or return None."""
    if not _INTEGER_RE.fullmatch(word):
        return None
    value = int(word)
    if not INT_MIN <= value <= INT_MAX:
        return None
    return value


def resolve_word(word: str) -> Operation:
    """Resolve an unquoted word to an operator, type literal, integer or text."""
    kind = OPERATORS.get(word)
    if kind is not None:
        return Operation.op(kind)

    column_type = parse_type_name(word)
    if column_type is not None:
        return Operation.push(column_type)

    number = parse_integer(word)
    if number is not None:
        return Operation.push(number)

    return Operation.push(word)


class QueryCompiler:
    """Compiles query text into operations."""

    def __init__(self) -> None:
        self.lexer = QueryLexer()
        self.lexer.build()

    def compile(self, text: str) -> list[Operation]:
        """Compile a query.

        Quoted strings always become text values, even when they are spelled
        like an operator.

        Raises:
            CompileError: If a string literal is not closed.
        """
        operations = []
        for tok in self.lexer.tokenize(text):
            if tok.type == "STRING":
                operations.append(Operation.push(tok.value))
            else:
                operations.append(resolve_word(tok.value))
        return operations


_default_compiler: QueryCompiler | None = None


def compile_query(text: str) -> list[Operation]:
    """Compile a query with a shared compiler instance."""
    global _default_compiler
    if _default_compiler is None:
        _default_compiler = QueryCompiler()
    return _default_compiler.compile(text)
