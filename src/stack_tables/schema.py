"""Text format for table schemas.

A schema file holds the table name on its first line followed by one
``column:Type`` line per column::

    users
    id:Int
    name:Str
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from stack_tables.errors import SchemaError, SchemaErrorKind, StorageError, StorageErrorKind
from stack_tables.types import Column, ColumnType, TableSchema, parse_type_name, type_name


def _where(line_no: int | None, source: str | None) -> str:
    parts = []
    if line_no is not None:
        parts.append(f"at line {line_no}")
    if source:
        parts.append(f"in {source}")
    return (" " + " ".join(parts)) if parts else ""


def make_schema(
    name: str,
    columns: Iterable[tuple[str, ColumnType]],
    source: str | None = None,
) -> TableSchema:
    """Build a TableSchema, rejecting empty names and duplicate columns.

    Args:
        name: Table name.
        columns: (column_name, column_type) pairs in declaration order.
        source: Optional description of where the schema came from, for errors.

    Raises:
        SchemaError: If a name is blank or a column name repeats.
    """
    if not name:
        raise SchemaError(SchemaErrorKind.EMPTY_NAME, f"table name can't be empty{_where(None, source)}")

    cols: list[Column] = []
    seen: set[str] = set()
    for col_name, col_type in columns:
        if not col_name:
            raise SchemaError(SchemaErrorKind.EMPTY_NAME, f"empty column name in table '{name}'{_where(None, source)}")
        if col_name in seen:
            raise SchemaError(
                SchemaErrorKind.DUPLICATE_COLUMN,
                f"column with name '{col_name}' already exists in table '{name}'{_where(None, source)}",
            )
        seen.add(col_name)
        cols.append(Column(col_name, col_type))
    return TableSchema(name=name, columns=tuple(cols))


def parse_schema(text: str, source: str | None = None) -> TableSchema:
    """Parse schema text into a TableSchema.

    Args:
        text: Schema file contents.
        source: Optional file path used in error messages.

    Returns:
        The parsed schema.

    Raises:
        SchemaError: On a blank name, a line without ``:``, a repeated column
            or an unknown type name.
    """
    lines = text.splitlines()
    name = lines[0].strip() if lines else ""
    if not name:
        raise SchemaError(SchemaErrorKind.EMPTY_NAME, f"table name can't be empty{_where(None, source)}")

    columns: list[Column] = []
    for line_no, line in enumerate(lines[1:], start=1):
        if not line.strip():
            continue

        col_name, sep, raw_type = line.partition(":")
        if not sep:
            raise SchemaError(
                SchemaErrorKind.MALFORMED_LINE,
                f"invalid format for column{_where(line_no, source)}",
            )
        col_name = col_name.strip()
        raw_type = raw_type.strip()

        if not col_name:
            raise SchemaError(SchemaErrorKind.EMPTY_NAME, f"empty column name{_where(line_no, source)}")

        if any(col.name == col_name for col in columns):
            raise SchemaError(
                SchemaErrorKind.DUPLICATE_COLUMN,
                f"column with name '{col_name}' already exists in table scheme{_where(line_no, source)}",
            )

        col_type = parse_type_name(raw_type)
        if col_type is None:
            raise SchemaError(
                SchemaErrorKind.UNKNOWN_TYPE,
                f"unknown column type '{raw_type}'{_where(line_no, source)}",
            )
        columns.append(Column(col_name, col_type))

    return TableSchema(name=name, columns=tuple(columns))


def write_schema(schema: TableSchema) -> str:
    """Serialize a schema to its text form, one column per line."""
    lines = [schema.name]
    for col in schema.columns:
        lines.append(f"{col.name}:{type_name(col.type)}")
    return "\n".join(lines) + "\n"


def read_schema_file(path: Path) -> TableSchema:
    """Read and parse a ``.tbls`` schema file."""
    try:
        with open(path, encoding="utf-8") as f:
            try:
                text = f.read()
            except (OSError, UnicodeDecodeError) as e:
                raise StorageError(StorageErrorKind.READ_FAILED, f"unable to read from the file {path}: {e}") from e
    except OSError as e:
        raise StorageError(StorageErrorKind.OPEN_FAILED, f"unable to open the file {path}: {e}") from e
    return parse_schema(text, source=str(path))


def write_schema_file(schema: TableSchema, path: Path) -> None:
    """Write a schema to a ``.tbls`` file, replacing any existing one."""
    try:
        path.write_text(write_schema(schema), encoding="utf-8")
    except OSError as e:
        raise StorageError(StorageErrorKind.WRITE_FAILED, f"unable to write to the file {path}: {e}") from e
