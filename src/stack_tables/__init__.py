"""Stack Tables - a flat-file table store with a postfix query language."""

from stack_tables.errors import (
    CodecError,
    CompileError,
    ExecutionError,
    SchemaError,
    StackTablesError,
    StorageError,
)
from stack_tables.parsing import Operation, OpKind, QueryCompiler, compile_query
from stack_tables.query_executor import QueryExecutor
from stack_tables.schema import parse_schema, write_schema
from stack_tables.storage import Catalog
from stack_tables.table import Table, decode_rows, encode_row
from stack_tables.types import Column, ColumnType, TableSchema

__all__ = [
    # Main API
    "Catalog",
    "QueryCompiler",
    "QueryExecutor",
    "compile_query",
    # Storage
    "Table",
    "decode_rows",
    "encode_row",
    "parse_schema",
    "write_schema",
    # Model
    "Column",
    "ColumnType",
    "Operation",
    "OpKind",
    "TableSchema",
    # Errors
    "StackTablesError",
    "CompileError",
    "SchemaError",
    "CodecError",
    "ExecutionError",
    "StorageError",
]

__version__ = "0.1.0"
