"""Parsing module for the postfix query language."""

from stack_tables.parsing.query_compiler import (
    OpKind,
    Operation,
    QueryCompiler,
    compile_query,
)
from stack_tables.parsing.query_lexer import QueryLexer

__all__ = [
    "OpKind",
    "Operation",
    "QueryCompiler",
    "QueryLexer",
    "compile_query",
]
