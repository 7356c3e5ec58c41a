"""Fixed-width binary row storage for a single table."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path

from stack_tables.errors import CodecError, CodecErrorKind, StorageError, StorageErrorKind
from stack_tables.types import (
    INT_MAX,
    INT_MIN,
    STR_SIZE,
    ColumnType,
    Row,
    TableSchema,
    Value,
    format_value,
    value_type,
)

logger = logging.getLogger(__name__)

# Native byte order, standard 4-byte size
_INT_FORMAT = struct.Struct("=i")


def _encode_value(value: Value) -> bytes:
    """Encode a single field according to the value's own variant."""
    kind = value_type(value)
    if kind is ColumnType.INT:
        if not INT_MIN <= value <= INT_MAX:  # type: ignore[operator]
            raise CodecError(CodecErrorKind.TYPE_MISMATCH, f"integer {value} does not fit in 32 bits")
        return _INT_FORMAT.pack(value)
    if kind is ColumnType.STR:
        raw = value.encode("utf-8")  # type: ignore[union-attr]
        if len(raw) > STR_SIZE:
            logger.warning(
                "string length must be less or equal to %d bytes, only the first %d bytes of %r will be saved",
                STR_SIZE, STR_SIZE, value,
            )
            raw = raw[:STR_SIZE]
        return raw.ljust(STR_SIZE, b"\x00")
    raise CodecError(CodecErrorKind.UNSUPPORTED_TYPE, f"type tag {format_value(value)} can't be stored in a row")


def _decode_value(data: bytes, column_type: ColumnType) -> Value:
    if column_type is ColumnType.INT:
        return _INT_FORMAT.unpack(data)[0]
    if column_type is ColumnType.STR:
        end = data.find(b"\x00")
        if end < 0:
            end = STR_SIZE
        return data[:end].decode("utf-8", errors="replace")
    raise CodecError(CodecErrorKind.UNSUPPORTED_TYPE, f"column type '{column_type.value}' can't be decoded")


def encode_row(row: Row, schema: TableSchema | None = None) -> bytes:
    """Encode one row to its fixed-width binary form.

    Args:
        row: Values to encode, in column order.
        schema: When given, each value is checked against its column first.

    Raises:
        CodecError: If the row does not fit the schema or holds a type tag.
    """
    if schema is not None:
        if len(row) != len(schema.columns):
            raise CodecError(
                CodecErrorKind.TYPE_MISMATCH,
                f"row has {len(row)} values but table '{schema.name}' has {len(schema.columns)} columns",
            )
        for value, col in zip(row, schema.columns):
            if value_type(value) is not col.type:
                raise CodecError(
                    CodecErrorKind.TYPE_MISMATCH,
                    f"value {format_value(value)} does not match column '{col.name}' of type {col.type.value}",
                )
    return b"".join(_encode_value(value) for value in row)


def encode_rows(rows: list[Row], schema: TableSchema) -> bytes:
    """Encode every row of a table back to back."""
    return b"".join(encode_row(row, schema) for row in rows)


def decode_rows(data: bytes, schema: TableSchema) -> list[Row]:
    """Split raw table bytes into rows.

    Text fields end at the first zero byte, so text holding an embedded NUL
    comes back shortened.

    Raises:
        CodecError: If the data length is not a whole number of rows.
    """
    if not data:
        return []
    width = schema.row_width
    if width == 0:
        return []
    if len(data) % width != 0:
        raise CodecError(
            CodecErrorKind.TRUNCATED_FILE,
            f"data length {len(data)} is not a multiple of the row width {width} for table '{schema.name}'",
        )

    rows: list[Row] = []
    view = memoryview(data)
    for start in range(0, len(data), width):
        offset = start
        row: Row = []
        for col in schema.columns:
            size = col.size_bytes
            row.append(_decode_value(bytes(view[offset:offset + size]), col.type))
            offset += size
        rows.append(row)
    return rows


@dataclass
class Table:
    """A schema together with its rows, held in memory."""

    schema: TableSchema
    rows: list[Row] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def count(self) -> int:
        """Return the number of rows in the table."""
        return len(self.rows)

    @classmethod
    def load(cls, schema: TableSchema, file_path: Path) -> Table:
        """Load a table's rows from its data file.

        A missing data file means the table has no rows yet.
        """
        if not file_path.exists():
            return cls(schema)
        try:
            with open(file_path, "rb") as f:
                try:
                    data = f.read()
                except OSError as e:
                    raise StorageError(
                        StorageErrorKind.READ_FAILED, f"unable to read from file {file_path}: {e}"
                    ) from e
        except OSError as e:
            raise StorageError(StorageErrorKind.OPEN_FAILED, f"unable to open the file {file_path}: {e}") from e

        try:
            rows = decode_rows(data, schema)
        except CodecError as e:
            raise CodecError(e.kind, f"incorrect file format in {file_path}: {e.message}") from e
        logger.debug("loaded %d rows for table '%s' from %s", len(rows), schema.name, file_path)
        return cls(schema, rows)

    def encode(self) -> bytes:
        return encode_rows(self.rows, self.schema)

    def save(self, file_path: Path, data: bytes | None = None) -> None:
        """Write every row to the data file, replacing its contents.

        Args:
            file_path: Data file to write.
            data: Rows already encoded with :meth:`encode`, if available.
        """
        if data is None:
            data = self.encode()
        try:
            with open(file_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(StorageErrorKind.WRITE_FAILED, f"unable to write to the file {file_path}: {e}") from e
