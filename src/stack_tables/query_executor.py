"""Stack-machine executor for compiled queries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Union

from stack_tables.errors import ExecutionError, ExecutionErrorKind
from stack_tables.parsing.query_compiler import OpKind, Operation
from stack_tables.schema import make_schema
from stack_tables.storage import Catalog
from stack_tables.table import Table
from stack_tables.types import (
    ColumnType,
    Row,
    TableSchema,
    Value,
    format_value,
    value_matches_type,
    value_type,
)

logger = logging.getLogger(__name__)

# Name given to the projected table built by select
TEMP_TABLE_NAME = "temp"


@dataclass(frozen=True)
class PendingCondition:
    """A comparison waiting to be resolved against the table it filters."""

    column: str
    value: Value
    op: OpKind


@dataclass(frozen=True)
class Condition:
    """A comparison resolved to a column position."""

    index: int
    value: Value
    op: OpKind


# Pending and resolved chains hold comparisons plus AND/OR markers, in RPN order
PendingEntry = Union[PendingCondition, OpKind]
ChainEntry = Union[Condition, OpKind]


def compare(a: Value, b: Value, op: OpKind) -> bool:
    """Compare a row value ``a`` with a condition value ``b``.

    Less and More include equality.

    Raises:
        ExecutionError: If the values are of different variants.
    """
    a_type = value_type(a)
    if a_type is not value_type(b):
        raise ExecutionError(
            ExecutionErrorKind.TYPE_MISMATCH,
            f"can't compare {format_value(a)} with {format_value(b)}",
        )
    if a_type is ColumnType.TYPE:
        a, b = a.order, b.order  # type: ignore[union-attr]

    if op is OpKind.EQUAL:
        return a == b
    elif op is OpKind.NOT_EQUAL:
        return a != b
    elif op is OpKind.LESS:
        return a <= b  # type: ignore[operator]
    elif op is OpKind.MORE:
        return a >= b  # type: ignore[operator]
    raise ValueError(f"Not a comparison operator: {op}")


def resolve_conditions(pending: list[PendingEntry], schema: TableSchema) -> list[ChainEntry]:
    """Resolve column names and validate the shape of a condition chain.

    The chain must reduce to exactly one boolean; an empty chain is returned
    unchanged and means "no condition".

    Raises:
        ExecutionError: On an unknown column, a value that doesn't match its
            column type, or a malformed chain.
    """
    chain: list[ChainEntry] = []
    depth = 0
    for entry in pending:
        if isinstance(entry, PendingCondition):
            index = schema.column_index(entry.column)
            if index is None:
                raise ExecutionError(
                    ExecutionErrorKind.UNKNOWN_COLUMN,
                    f"no such column '{entry.column}' in table '{schema.name}'",
                )
            column = schema.columns[index]
            if not value_matches_type(entry.value, column.type):
                raise ExecutionError(
                    ExecutionErrorKind.TYPE_MISMATCH,
                    f"invalid argument for `{entry.op.value}` operation, expected type "
                    f"{column.type.value} for column '{column.name}' but found {format_value(entry.value)}",
                )
            chain.append(Condition(index, entry.value, entry.op))
            depth += 1
        else:
            if depth < 2:
                raise ExecutionError(
                    ExecutionErrorKind.MALFORMED_CONDITION_CHAIN,
                    f"`{entry.value}` needs two conditions to combine",
                )
            chain.append(entry)
            depth -= 1

    if chain and depth != 1:
        raise ExecutionError(
            ExecutionErrorKind.MALFORMED_CONDITION_CHAIN,
            f"conditions reduce to {depth} results instead of one, combine them with `and` or `or`",
        )
    return chain


def evaluate_chain(chain: list[ChainEntry], row: Row) -> bool:
    """Evaluate a resolved condition chain against one row."""
    results: list[bool] = []
    for entry in chain:
        if isinstance(entry, Condition):
            results.append(compare(row[entry.index], entry.value, entry.op))
            continue
        if len(results) < 2:
            raise ExecutionError(
                ExecutionErrorKind.MALFORMED_CONDITION_CHAIN,
                f"`{entry.value}` needs two conditions to combine",
            )
        right = results.pop()
        left = results.pop()
        results.append(left and right if entry is OpKind.AND else left or right)

    if len(results) != 1:
        raise ExecutionError(
            ExecutionErrorKind.MALFORMED_CONDITION_CHAIN,
            f"conditions reduce to {len(results)} results instead of one",
        )
    return results[0]


@dataclass
class QueryState:
    """Mutable state of one running query."""

    words: list[Value] = field(default_factory=list)
    conditions: list[PendingEntry] = field(default_factory=list)
    temp: Table | None = None


class QueryExecutor:
    """Executes compiled queries against a catalog.

    Each operator pops its operands from the word stack. The first error
    aborts the query; changes made to the catalog before it are kept.
    """

    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog
        self.handlers: dict[OpKind, Callable[[QueryState, OpKind], None]] = {
            OpKind.SELECT: self._execute_select,
            OpKind.INSERT: self._execute_insert,
            OpKind.DELETE: self._execute_delete,
            OpKind.FILTER: self._execute_filter,
            OpKind.CREATE: self._execute_create,
            OpKind.DROP: self._execute_drop,
            OpKind.AND: self._execute_combinator,
            OpKind.OR: self._execute_combinator,
            OpKind.EQUAL: self._execute_comparison,
            OpKind.NOT_EQUAL: self._execute_comparison,
            OpKind.LESS: self._execute_comparison,
            OpKind.MORE: self._execute_comparison,
        }

    def execute(self, operations: list[Operation]) -> Table | None:
        """Run a compiled query.

        Returns:
            The table built by select (and narrowed by filter), or None when
            the query selected nothing.

        Raises:
            ExecutionError: On the first structural error in the query.
        """
        state = QueryState()
        for operation in operations:
            if operation.kind is OpKind.PUSH:
                state.words.append(operation.value)  # type: ignore[arg-type]
            else:
                self.handlers[operation.kind](state, operation.kind)

        if state.words:
            logger.warning("%d unused words in the stack", len(state.words))
        if state.conditions:
            logger.warning("%d unused conditions in the stack", len(state.conditions))
        return state.temp

    # --- Operand helpers ---

    def _pop_table(self, state: QueryState, op_name: str) -> Table:
        """Pop a table name and return the table it names."""
        if not state.words:
            raise ExecutionError(
                ExecutionErrorKind.MISSING_ARGUMENTS,
                f"no table name provided for `{op_name}` operation",
            )
        name = state.words.pop()
        if not isinstance(name, str):
            raise ExecutionError(
                ExecutionErrorKind.TYPE_MISMATCH,
                f"`{op_name}` operation expects a table name but found {format_value(name)}",
            )
        return self.catalog.get_or_raise(name)

    def _implicit_source(self, word: Value) -> Table | None:
        """Return the only table when ``word`` is one of its columns.

        Lets ``id name select`` work without a table name while the catalog
        holds a single table.
        """
        if not isinstance(word, str) or word in self.catalog or len(self.catalog) != 1:
            return None
        table = next(iter(self.catalog))
        if word == "*" or table.schema.column_index(word) is not None:
            return table
        return None

    def _take_chain(self, state: QueryState, schema: TableSchema) -> list[ChainEntry]:
        """Resolve the pending conditions against a schema and clear them."""
        chain = resolve_conditions(state.conditions, schema)
        state.conditions.clear()
        return chain

    # --- Operators ---

    def _execute_select(self, state: QueryState, kind: OpKind) -> None:
        words = state.words
        if not words:
            raise ExecutionError(ExecutionErrorKind.MISSING_ARGUMENTS, "no arguments provided for `select` operation")

        source = self._implicit_source(words[-1])
        if source is None:
            source = self._pop_table(state, "select")
        schema = source.schema

        names: list[str] = []
        while words and isinstance(words[-1], str):
            names.append(words.pop())  # type: ignore[arg-type]
        names.reverse()
        if not names:
            raise ExecutionError(
                ExecutionErrorKind.MISSING_ARGUMENTS,
                f"no columns provided for `select` operation on table '{schema.name}'",
            )

        indices: list[int] = []
        for name in names:
            if name == "*":
                indices.extend(range(len(schema.columns)))
                continue
            index = schema.column_index(name)
            if index is None:
                raise ExecutionError(
                    ExecutionErrorKind.UNKNOWN_COLUMN,
                    f"non existing column '{name}' in table '{schema.name}'",
                )
            indices.append(index)

        chain = self._take_chain(state, schema)
        temp = Table(schema.project(indices, TEMP_TABLE_NAME))
        for row in source.rows:
            if chain and not evaluate_chain(chain, row):
                continue
            temp.rows.append([row[i] for i in indices])

        state.temp = temp
        words.clear()

    def _execute_insert(self, state: QueryState, kind: OpKind) -> None:
        table = self._pop_table(state, "insert")
        words = state.words
        columns = table.schema.columns

        if len(words) < len(columns):
            raise ExecutionError(
                ExecutionErrorKind.STACK_UNDERFLOW,
                f"not enough arguments for `insert` operation, provided {len(words)} but needed {len(columns)}",
            )

        values = words[len(words) - len(columns):]
        for value, column in zip(values, columns):
            if not value_matches_type(value, column.type):
                raise ExecutionError(
                    ExecutionErrorKind.TYPE_MISMATCH,
                    f"argument {format_value(value)} doesn't match column '{column.name}' of type {column.type.value}",
                )
            if column.type is ColumnType.TYPE:
                raise ExecutionError(
                    ExecutionErrorKind.TYPE_MISMATCH,
                    f"column '{column.name}' of type Type can't hold stored values",
                )

        table.rows.append(list(values))
        words.clear()

    def _execute_delete(self, state: QueryState, kind: OpKind) -> None:
        table = self._pop_table(state, "delete")
        chain = self._take_chain(state, table.schema)
        if not chain:
            logger.debug("delete on '%s' without conditions removes nothing", table.name)
            return

        doomed = [i for i, row in enumerate(table.rows) if evaluate_chain(chain, row)]
        for deleted, index in enumerate(doomed):
            del table.rows[index - deleted]
        logger.debug("deleted %d rows from '%s'", len(doomed), table.name)

    def _execute_filter(self, state: QueryState, kind: OpKind) -> None:
        temp = state.temp
        if temp is None:
            raise ExecutionError(
                ExecutionErrorKind.MISSING_ARGUMENTS,
                "`filter` operation needs a table from an earlier `select`",
            )
        chain = self._take_chain(state, temp.schema)
        if chain:
            temp.rows = [row for row in temp.rows if evaluate_chain(chain, row)]

    def _execute_comparison(self, state: QueryState, kind: OpKind) -> None:
        words = state.words
        if len(words) < 2:
            raise ExecutionError(
                ExecutionErrorKind.STACK_UNDERFLOW,
                f"not enough arguments for `{kind.value}` operation, provided {len(words)} but needed 2",
            )
        value = words.pop()
        column = words.pop()
        if not isinstance(column, str):
            raise ExecutionError(
                ExecutionErrorKind.TYPE_MISMATCH,
                f"invalid argument for `{kind.value}` operation, expected a column name but found {format_value(column)}",
            )
        state.conditions.append(PendingCondition(column, value, kind))

    def _execute_combinator(self, state: QueryState, kind: OpKind) -> None:
        state.conditions.append(kind)

    def _execute_create(self, state: QueryState, kind: OpKind) -> None:
        words = state.words

        columns: list[tuple[str, ColumnType]] = []
        while words and isinstance(words[-1], ColumnType):
            column_type: ColumnType = words.pop()  # type: ignore[assignment]
            if not words:
                raise ExecutionError(
                    ExecutionErrorKind.MISSING_ARGUMENTS,
                    f"column type {column_type.value} has no column name in `create` operation",
                )
            name = words.pop()
            if not isinstance(name, str):
                raise ExecutionError(
                    ExecutionErrorKind.TYPE_MISMATCH,
                    f"`create` operation expects a column name but found {format_value(name)}",
                )
            if column_type is ColumnType.TYPE:
                raise ExecutionError(
                    ExecutionErrorKind.TYPE_MISMATCH,
                    f"column '{name}' can't be stored with type {column_type.value}",
                )
            columns.append((name, column_type))
        columns.reverse()

        if not words:
            raise ExecutionError(ExecutionErrorKind.MISSING_ARGUMENTS, "no table name provided for `create` operation")
        table_name = words.pop()
        if not isinstance(table_name, str):
            raise ExecutionError(
                ExecutionErrorKind.TYPE_MISMATCH,
                f"`create` operation expects a table name but found {format_value(table_name)}",
            )
        if not columns:
            raise ExecutionError(
                ExecutionErrorKind.MISSING_ARGUMENTS,
                f"no columns provided for `create` operation on table '{table_name}'",
            )
        if table_name in self.catalog:
            raise ExecutionError(ExecutionErrorKind.DUPLICATE_TABLE, f"table '{table_name}' already exists")

        self.catalog.add(Table(make_schema(table_name, columns)))

    def _execute_drop(self, state: QueryState, kind: OpKind) -> None:
        table = self._pop_table(state, "drop")
        self.catalog.drop(table.name)
