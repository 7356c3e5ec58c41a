"""Value and schema definitions shared by every part of stack_tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from stack_tables.errors import CodecError, CodecErrorKind


class ColumnType(Enum):
    """Column types a table may declare."""

    INT = "Int"
    STR = "Str"
    TYPE = "Type"

    @property
    def size_bytes(self) -> int:
        """Return the fixed on-disk width of a value of this type."""
        sizes = {
            ColumnType.INT: INT_SIZE,
            ColumnType.STR: STR_SIZE,
        }
        if self not in sizes:
            raise CodecError(
                CodecErrorKind.UNSUPPORTED_TYPE,
                f"column type '{self.value}' has no on-disk representation",
            )
        return sizes[self]

    @property
    def order(self) -> int:
        """Position in declaration order, used to order type tags."""
        return list(ColumnType).index(self)


# Width of an Int field (int32)
INT_SIZE = 4

# Width of a Str field, zero padded
STR_SIZE = 50

INT_MIN = -(2**31)
INT_MAX = 2**31 - 1

# Mapping from type literal spelling to ColumnType
COLUMN_TYPE_NAMES: dict[str, ColumnType] = {ct.value: ct for ct in ColumnType}


# A value on the operand stack or in a row: Integer, Text or a type tag.
Value = Union[int, str, ColumnType]

# One value per column, positionally aligned with the schema.
Row = list[Value]


def type_name(column_type: ColumnType) -> str:
    """Return the literal spelling of a column type."""
    return column_type.value


def parse_type_name(name: str) -> ColumnType | None:
    """Resolve a type literal such as ``Int`` to its ColumnType."""
    return COLUMN_TYPE_NAMES.get(name)


def value_type(value: Value) -> ColumnType:
    """Return the variant of a value as a ColumnType."""
    if isinstance(value, ColumnType):
        return ColumnType.TYPE
    if isinstance(value, bool):
        raise TypeError(f"Not a stack_tables value: {value!r}")
    if isinstance(value, int):
        return ColumnType.INT
    if isinstance(value, str):
        return ColumnType.STR
    raise TypeError(f"Not a stack_tables value: {value!r}")


def value_matches_type(value: Value, column_type: ColumnType) -> bool:
    """Check whether a value may be stored in a column of the given type."""
    try:
        return value_type(value) is column_type
    except TypeError:
        return False


def format_value(value: Value) -> str:
    """Render a value for messages: text quoted, type tags by name."""
    if isinstance(value, ColumnType):
        return value.value
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


@dataclass(frozen=True)
class Column:
    """A named, typed column."""

    name: str
    type: ColumnType

    @property
    def size_bytes(self) -> int:
        return self.type.size_bytes


@dataclass(frozen=True)
class TableSchema:
    """A table's name and ordered columns.

    Use :func:`stack_tables.schema.make_schema` to build a validated schema;
    the dataclass itself performs no checks.
    """

    name: str
    columns: tuple[Column, ...] = field(default_factory=tuple)

    @property
    def row_width(self) -> int:
        """Return the byte length of one encoded row."""
        return sum(col.size_bytes for col in self.columns)

    @property
    def column_names(self) -> list[str]:
        return [col.name for col in self.columns]

    def column_index(self, name: str) -> int | None:
        """Return the position of the named column, or None."""
        for i, col in enumerate(self.columns):
            if col.name == name:
                return i
        return None

    def project(self, indices: list[int], name: str) -> TableSchema:
        """Build a schema holding only the columns at the given positions."""
        return TableSchema(name=name, columns=tuple(self.columns[i] for i in indices))

    def row_matches(self, row: Row) -> bool:
        """Check a row's length and value variants against this schema."""
        if len(row) != len(self.columns):
            return False
        return all(value_matches_type(v, col.type) for v, col in zip(row, self.columns))
