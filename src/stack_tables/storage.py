"""Catalog of all tables stored in one database directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator

from stack_tables.errors import (
    ExecutionError,
    ExecutionErrorKind,
    SchemaError,
    SchemaErrorKind,
    StorageError,
    StorageErrorKind,
)
from stack_tables.schema import read_schema_file, write_schema_file
from stack_tables.table import Table

logger = logging.getLogger(__name__)


class Catalog:
    """Manages all tables for a database directory.

    Tables live in memory while the process runs. :meth:`flush` writes them
    back; :meth:`drop` removes a table's files straight away.
    """

    SCHEMA_SUFFIX = ".tbls"
    DATA_SUFFIX = ".tbl"

    def __init__(self, path: Path, name: str | None = None) -> None:
        """Initialize an empty catalog.

        Args:
            path: Directory holding the table files.
            name: Catalog name, defaults to the directory name.
        """
        self.path = path
        self.name = name if name is not None else path.name
        self._tables: list[Table] = []

    @classmethod
    def load(cls, path: Path | str) -> Catalog:
        """Load every table found in a database directory.

        The directory is created when it does not exist yet. Each schema file
        is parsed and its data file read; a table whose data file is missing
        starts with no rows.

        Raises:
            StorageError: If the directory can't be created or read.
            SchemaError: If a schema file is invalid.
            CodecError: If a data file is not a whole number of rows.
        """
        if isinstance(path, str):
            path = Path(path)

        try:
            path.mkdir(parents=True, exist_ok=True)
            schema_files = sorted(path.glob(f"*{cls.SCHEMA_SUFFIX}"))
        except OSError as e:
            raise StorageError(StorageErrorKind.OPEN_FAILED, f"unable to open database directory {path}: {e}") from e
        if not path.is_dir():
            raise StorageError(StorageErrorKind.OPEN_FAILED, f"database path is not a directory: {path}")

        catalog = cls(path)
        schemas = [read_schema_file(schema_file) for schema_file in schema_files]
        for schema in schemas:
            if schema.name in catalog:
                raise SchemaError(
                    SchemaErrorKind.DUPLICATE_TABLE,
                    f"table '{schema.name}' is declared by more than one schema file in {path}",
                )
            catalog._tables.append(Table.load(schema, catalog.data_path(schema.name)))

        logger.debug("loaded %d tables from %s", len(catalog), path)
        return catalog

    def schema_path(self, table_name: str) -> Path:
        return self.path / f"{table_name}{self.SCHEMA_SUFFIX}"

    def data_path(self, table_name: str) -> Path:
        return self.path / f"{table_name}{self.DATA_SUFFIX}"

    def get(self, table_name: str) -> Table | None:
        """Return the named table, or None."""
        for table in self._tables:
            if table.name == table_name:
                return table
        return None

    def get_or_raise(self, table_name: str) -> Table:
        """Return the named table.

        Raises:
            ExecutionError: If no such table exists.
        """
        table = self.get(table_name)
        if table is None:
            raise ExecutionError(ExecutionErrorKind.UNKNOWN_TABLE, f"no such table '{table_name}'")
        return table

    def names(self) -> list[str]:
        """List table names in catalog order."""
        return [table.name for table in self._tables]

    def add(self, table: Table) -> None:
        """Register a new table. Its files are written on the next flush.

        Raises:
            ExecutionError: If a table with the same name already exists.
        """
        if table.name in self:
            raise ExecutionError(ExecutionErrorKind.DUPLICATE_TABLE, f"table '{table.name}' already exists")
        self._tables.append(table)

    def drop(self, table_name: str) -> Table:
        """Remove a table and delete its schema and data files immediately.

        Raises:
            ExecutionError: If no such table exists.
            StorageError: If a file exists but can't be deleted.
        """
        table = self.get_or_raise(table_name)
        self._tables.remove(table)
        for file_path in (self.schema_path(table_name), self.data_path(table_name)):
            try:
                file_path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(StorageErrorKind.WRITE_FAILED, f"unable to delete the file {file_path}: {e}") from e
        logger.debug("dropped table '%s'", table_name)
        return table

    def flush(self) -> None:
        """Write every table's schema file and then its data file.

        All tables are encoded before any file is touched, so a row that
        can't be encoded leaves every file as it was.
        """
        payloads = [table.encode() for table in self._tables]
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(StorageErrorKind.WRITE_FAILED, f"unable to create database directory {self.path}: {e}") from e
        for table, data in zip(self._tables, payloads):
            write_schema_file(table.schema, self.schema_path(table.name))
            table.save(self.data_path(table.name), data)
        logger.debug("flushed %d tables to %s", len(self._tables), self.path)

    def __contains__(self, table_name: object) -> bool:
        return any(table.name == table_name for table in self._tables)

    def __iter__(self) -> Iterator[Table]:
        return iter(list(self._tables))

    def __len__(self) -> int:
        return len(self._tables)

    def __enter__(self) -> Catalog:
        return self

    def __exit__(self, exc_type: Any, *args: Any) -> None:
        if exc_type is None:
            self.flush()
