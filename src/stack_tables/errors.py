"""Exception hierarchy for stack_tables.

Every error carries a ``kind`` drawn from the enum that belongs to its
class, so callers can branch on the precise failure without parsing the
message text.
"""

from __future__ import annotations

from enum import Enum


class CompileErrorKind(Enum):
    UNCLOSED_STRING = "unclosed string"


class SchemaErrorKind(Enum):
    EMPTY_NAME = "empty name"
    DUPLICATE_COLUMN = "duplicate column"
    MALFORMED_LINE = "malformed line"
    UNKNOWN_TYPE = "unknown type"
    DUPLICATE_TABLE = "duplicate table"


class CodecErrorKind(Enum):
    TRUNCATED_FILE = "truncated file"
    TYPE_MISMATCH = "type mismatch"
    UNSUPPORTED_TYPE = "unsupported type"


class ExecutionErrorKind(Enum):
    MISSING_ARGUMENTS = "missing arguments"
    UNKNOWN_TABLE = "unknown table"
    UNKNOWN_COLUMN = "unknown column"
    TYPE_MISMATCH = "type mismatch"
    MALFORMED_CONDITION_CHAIN = "malformed condition chain"
    STACK_UNDERFLOW = "stack underflow"
    DUPLICATE_TABLE = "duplicate table"


class StorageErrorKind(Enum):
    OPEN_FAILED = "open failed"
    READ_FAILED = "read failed"
    WRITE_FAILED = "write failed"


class StackTablesError(Exception):
    """Base class for all stack_tables errors."""

    def __init__(self, kind: Enum, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class CompileError(StackTablesError):
    """Query text could not be turned into operations."""

    kind: CompileErrorKind


class SchemaError(StackTablesError):
    """A table schema is invalid."""

    kind: SchemaErrorKind


class CodecError(StackTablesError):
    """Row data could not be encoded or decoded."""

    kind: CodecErrorKind


class ExecutionError(StackTablesError):
    """A query failed while running on the stack machine."""

    kind: ExecutionErrorKind


class StorageError(StackTablesError):
    """Reading or writing a table file failed."""

    kind: StorageErrorKind
