"""Tests for executing queries on the stack machine."""

import logging

import pytest

from stack_tables.errors import ExecutionError, ExecutionErrorKind, SchemaError, SchemaErrorKind
from stack_tables.parsing import OpKind, compile_query
from stack_tables.query_executor import (
    Condition,
    QueryExecutor,
    compare,
    evaluate_chain,
    resolve_conditions,
    PendingCondition,
)
from stack_tables.schema import make_schema
from stack_tables.storage import Catalog
from stack_tables.table import Table
from stack_tables.types import ColumnType


@pytest.fixture
def catalog(tmp_path):
    catalog = Catalog.load(tmp_path)
    schema = make_schema("users", [("id", ColumnType.INT), ("name", ColumnType.STR), ("age", ColumnType.INT)])
    catalog.add(Table(schema, [
        [0, "John", 30],
        [1, "Dmitriy", 25],
        [2, "Alice", 41],
        [3, "Bob", 25],
    ]))
    return catalog


@pytest.fixture
def run(catalog):
    executor = QueryExecutor(catalog)

    def _run(text):
        return executor.execute(compile_query(text))

    return _run


def _raises(run, text, kind):
    with pytest.raises(ExecutionError) as exc_info:
        run(text)
    assert exc_info.value.kind is kind
    return exc_info.value


class TestSelect:
    """Tests for the select operator."""

    def test_select_columns(self, run):
        """Test projecting columns keeps their written order."""
        result = run("name id users select")

        assert result.schema.column_names == ["name", "id"]
        assert result.rows == [["John", 0], ["Dmitriy", 1], ["Alice", 2], ["Bob", 3]]

    def test_select_star(self, run):
        result = run("* users select")

        assert result.schema.column_names == ["id", "name", "age"]
        assert len(result.rows) == 4

    def test_star_mixed_with_columns(self, run):
        result = run("name * users select")
        assert result.schema.column_names == ["name", "id", "name", "age"]

    def test_result_is_a_copy(self, run, catalog):
        result = run("* users select")
        result.rows[0][1] = "Changed"

        assert catalog.get("users").rows[0][1] == "John"

    def test_result_table_name(self, run):
        assert run("id users select").name == "temp"

    def test_select_stops_at_non_text_operand(self, run, caplog):
        """Only the text operands directly under the table name are columns."""
        with caplog.at_level(logging.WARNING, logger="stack_tables.query_executor"):
            result = run("name 5 id users select")

        assert result.schema.column_names == ["id"]
        assert "unused words" not in caplog.text

    def test_implicit_single_table(self, tmp_path):
        """With one table, a query may leave out the table name."""
        catalog = Catalog.load(tmp_path)
        schema = make_schema("stuff", [("id", ColumnType.INT), ("name", ColumnType.STR)])
        catalog.add(Table(schema, [[0, "John"], [1, "Dmitriy"]]))

        result = QueryExecutor(catalog).execute(compile_query("id select"))

        assert result.schema.column_names == ["id"]
        assert result.rows == [[0], [1]]

    def test_implicit_table_needs_a_single_table(self, run, catalog):
        catalog.add(Table(make_schema("other", [("id", ColumnType.INT)])))
        _raises(run, "id select", ExecutionErrorKind.UNKNOWN_TABLE)

    def test_unknown_table(self, run):
        _raises(run, "id nope select", ExecutionErrorKind.UNKNOWN_TABLE)

    def test_unknown_column(self, run):
        _raises(run, "salary users select", ExecutionErrorKind.UNKNOWN_COLUMN)

    def test_no_columns(self, run):
        _raises(run, "users select", ExecutionErrorKind.MISSING_ARGUMENTS)

    def test_no_arguments(self, run):
        _raises(run, "select", ExecutionErrorKind.MISSING_ARGUMENTS)

    def test_table_name_must_be_text(self, run):
        _raises(run, "id 5 select", ExecutionErrorKind.TYPE_MISMATCH)

    def test_select_with_pending_conditions(self, run):
        """Conditions written before select are applied to the source table."""
        result = run("age 25 == name users select")
        assert result.rows == [["Dmitriy"], ["Bob"]]

    def test_pending_condition_on_unselected_column(self, run):
        result = run("id 2 < name users select")
        assert result.rows == [["John"], ["Dmitriy"], ["Alice"]]


class TestFilter:
    """Tests for filter and the condition algebra."""

    def test_filter_more(self, run):
        """More keeps rows whose value is at least the operand."""
        result = run("id name users select id 2 > filter")
        assert result.rows == [[2, "Alice"], [3, "Bob"]]

    def test_filter_less(self, run):
        result = run("id users select id 1 < filter")
        assert result.rows == [[0], [1]]

    def test_filter_equal_text(self, run):
        result = run('id name users select name "Bob" == filter')
        assert result.rows == [[3, "Bob"]]

    def test_filter_not_equal(self, run):
        result = run("age users select age 25 != filter")
        assert result.rows == [[30], [41]]

    def test_filter_and(self, run):
        result = run("id age users select age 25 == id 2 > and filter")
        assert result.rows == [[3, 25]]

    def test_filter_or(self, run):
        result = run("id users select id 0 == id 3 == or filter")
        assert result.rows == [[0], [3]]

    def test_nested_chain(self, run):
        """(id >= 1 and id <= 2) or name == John."""
        result = run('id name users select id 1 > id 2 < and name "John" == or filter')
        assert result.rows == [[0, "John"], [1, "Dmitriy"], [2, "Alice"]]

    def test_filter_without_conditions_keeps_all(self, run):
        assert len(run("id users select filter").rows) == 4

    def test_filter_resolves_against_selected_columns(self, run):
        _raises(run, "id users select age 25 == filter", ExecutionErrorKind.UNKNOWN_COLUMN)

    def test_filter_twice(self, run):
        result = run("id users select id 1 > filter id 2 < filter")
        assert result.rows == [[1], [2]]

    def test_filter_without_select(self, run):
        _raises(run, "id 1 == filter", ExecutionErrorKind.MISSING_ARGUMENTS)

    def test_value_type_mismatch(self, run):
        _raises(run, 'id users select id "one" == filter', ExecutionErrorKind.TYPE_MISMATCH)

    def test_condition_column_must_be_text(self, run):
        _raises(run, "id users select 1 1 == filter", ExecutionErrorKind.TYPE_MISMATCH)

    def test_condition_underflow(self, run):
        _raises(run, "id users select 1 == filter", ExecutionErrorKind.STACK_UNDERFLOW)

    def test_uncombined_conditions_are_malformed(self, run):
        _raises(run, "id users select id 1 == id 2 == filter", ExecutionErrorKind.MALFORMED_CONDITION_CHAIN)

    def test_combinator_without_operands(self, run):
        _raises(run, "id users select id 1 == and filter", ExecutionErrorKind.MALFORMED_CONDITION_CHAIN)


class TestInsert:
    """Tests for the insert operator."""

    def test_insert(self, run, catalog):
        run('4 "Eve" 22 users insert')
        assert catalog.get("users").rows[-1] == [4, "Eve", 22]

    def test_insert_uses_top_operands(self, run, catalog, caplog):
        """Extra operands below the row are discarded."""
        run('99 4 "Eve" 22 users insert')
        assert catalog.get("users").rows[-1] == [4, "Eve", 22]
        assert catalog.get("users").count == 5

    def test_insert_type_mismatch(self, run, catalog):
        _raises(run, '"Eve" 4 22 users insert', ExecutionErrorKind.TYPE_MISMATCH)
        assert catalog.get("users").count == 4

    def test_insert_too_few_operands(self, run):
        _raises(run, '"Eve" 22 users insert', ExecutionErrorKind.STACK_UNDERFLOW)

    def test_insert_unknown_table(self, run):
        _raises(run, "1 nope insert", ExecutionErrorKind.UNKNOWN_TABLE)

    def test_insert_then_select(self, run):
        result = run('4 "Eve" 22 users insert id name users select id 3 > filter')
        assert result.rows == [[3, "Bob"], [4, "Eve"]]

    def test_insert_into_type_column(self, run, catalog):
        """Type columns can be declared in schema files but hold no rows."""
        catalog.add(Table(make_schema("tags", [("id", ColumnType.INT), ("kind", ColumnType.TYPE)])))

        _raises(run, "1 Int tags insert", ExecutionErrorKind.TYPE_MISMATCH)
        assert catalog.get("tags").rows == []


class TestDelete:
    """Tests for the delete operator."""

    def test_delete_matching_rows(self, run, catalog):
        """Delete removes the rows the condition describes."""
        run("age 25 == users delete")
        assert [row[0] for row in catalog.get("users").rows] == [0, 2]

    def test_delete_with_or(self, run, catalog):
        run('id 0 == name "Alice" == or users delete')
        assert [row[0] for row in catalog.get("users").rows] == [1, 3]

    def test_delete_adjacent_rows(self, run, catalog):
        run("id 1 > users delete")
        assert [row[0] for row in catalog.get("users").rows] == [0]

    def test_delete_without_conditions(self, run, catalog):
        """An empty condition list deletes nothing."""
        run("users delete")
        assert catalog.get("users").count == 4

    def test_malformed_chain_leaves_table(self, run, catalog):
        _raises(run, "id 0 == id 1 == users delete", ExecutionErrorKind.MALFORMED_CONDITION_CHAIN)
        assert catalog.get("users").count == 4

    def test_delete_unknown_column(self, run, catalog):
        _raises(run, "salary 0 == users delete", ExecutionErrorKind.UNKNOWN_COLUMN)
        assert catalog.get("users").count == 4

    def test_delete_unknown_table(self, run):
        _raises(run, "nope delete", ExecutionErrorKind.UNKNOWN_TABLE)

    def test_earlier_mutations_are_kept(self, run, catalog):
        """A failing query keeps the changes made before the error."""
        _raises(run, "age 25 == users delete nope drop", ExecutionErrorKind.UNKNOWN_TABLE)
        assert catalog.get("users").count == 2


class TestCreateDrop:
    """Tests for create and drop."""

    def test_create(self, run, catalog):
        """Test creating a table registers an empty table."""
        result = run("t (id Int) (name Str) create")

        assert result is None
        table = catalog.get("t")
        assert table.schema.column_names == ["id", "name"]
        assert [col.type for col in table.schema.columns] == [ColumnType.INT, ColumnType.STR]
        assert table.rows == []

    def test_create_then_use(self, run):
        result = run('t (id Int) (name Str) create 1 "x" t insert * t select')
        assert result.rows == [[1, "x"]]

    def test_create_is_persisted_on_flush(self, run, catalog, tmp_path):
        run("t (id Int) create")
        assert not (tmp_path / "t.tbls").exists()

        catalog.flush()

        assert (tmp_path / "t.tbls").read_text() == "t\nid:Int\n"
        assert (tmp_path / "t.tbl").read_bytes() == b""

    def test_drop_removes_files(self, run, catalog, tmp_path):
        """Test drop deletes both backing files straight away."""
        run("t (id Int) (name Str) create")
        catalog.flush()

        run("t drop")

        assert "t" not in catalog
        assert not (tmp_path / "t.tbls").exists()
        assert not (tmp_path / "t.tbl").exists()

    def test_create_existing_table(self, run):
        _raises(run, "users (id Int) create", ExecutionErrorKind.DUPLICATE_TABLE)

    def test_create_without_columns(self, run):
        _raises(run, "t create", ExecutionErrorKind.MISSING_ARGUMENTS)

    def test_create_without_name(self, run):
        _raises(run, "(id Int) create", ExecutionErrorKind.MISSING_ARGUMENTS)

    def test_create_without_anything(self, run):
        _raises(run, "create", ExecutionErrorKind.MISSING_ARGUMENTS)

    def test_create_malformed_pair(self, run):
        _raises(run, "t 5 Int create", ExecutionErrorKind.TYPE_MISMATCH)

    def test_create_type_column(self, run):
        _raises(run, "t (kind Type) create", ExecutionErrorKind.TYPE_MISMATCH)

    def test_create_duplicate_column(self, run):
        with pytest.raises(SchemaError) as exc_info:
            run("t (id Int) (id Str) create")
        assert exc_info.value.kind is SchemaErrorKind.DUPLICATE_COLUMN

    def test_drop_unknown(self, run):
        _raises(run, "nope drop", ExecutionErrorKind.UNKNOWN_TABLE)

    def test_drop_without_name(self, run):
        _raises(run, "drop", ExecutionErrorKind.MISSING_ARGUMENTS)


class TestLeftovers:
    """Leftover operands and conditions only produce warnings."""

    def test_unused_words(self, run, caplog):
        with caplog.at_level(logging.WARNING, logger="stack_tables.query_executor"):
            result = run("1 2 3")
        assert result is None
        assert "3 unused words" in caplog.text

    def test_unused_conditions(self, run, caplog):
        with caplog.at_level(logging.WARNING, logger="stack_tables.query_executor"):
            run("id 1 ==")
        assert "1 unused conditions" in caplog.text


class TestConditionAlgebra:
    """Tests for compare, resolve_conditions and evaluate_chain."""

    def test_compare(self):
        assert compare(1, 1, OpKind.EQUAL)
        assert compare(1, 2, OpKind.NOT_EQUAL)
        assert compare(1, 1, OpKind.LESS)
        assert compare(1, 2, OpKind.LESS)
        assert not compare(3, 2, OpKind.LESS)
        assert compare(2, 2, OpKind.MORE)
        assert not compare(1, 2, OpKind.MORE)
        assert compare("abc", "abd", OpKind.LESS)

    def test_compare_type_tags(self):
        assert compare(ColumnType.INT, ColumnType.STR, OpKind.LESS)
        assert compare(ColumnType.STR, ColumnType.STR, OpKind.EQUAL)

    def test_compare_mismatched_variants(self):
        with pytest.raises(ExecutionError) as exc_info:
            compare(1, "1", OpKind.EQUAL)
        assert exc_info.value.kind is ExecutionErrorKind.TYPE_MISMATCH

    def test_resolve(self):
        schema = make_schema("t", [("id", ColumnType.INT), ("name", ColumnType.STR)])
        pending = [
            PendingCondition("name", "x", OpKind.EQUAL),
            PendingCondition("id", 1, OpKind.MORE),
            OpKind.OR,
        ]

        chain = resolve_conditions(pending, schema)

        assert chain == [Condition(1, "x", OpKind.EQUAL), Condition(0, 1, OpKind.MORE), OpKind.OR]
        assert evaluate_chain(chain, [0, "x"]) is True
        assert evaluate_chain(chain, [0, "y"]) is False
        assert evaluate_chain(chain, [5, "y"]) is True

    def test_resolve_empty(self):
        schema = make_schema("t", [("id", ColumnType.INT)])
        assert resolve_conditions([], schema) == []

    def test_evaluate_malformed(self):
        with pytest.raises(ExecutionError) as exc_info:
            evaluate_chain([Condition(0, 1, OpKind.EQUAL), Condition(0, 1, OpKind.EQUAL)], [1])
        assert exc_info.value.kind is ExecutionErrorKind.MALFORMED_CONDITION_CHAIN

    def test_handlers_cover_every_operator(self, catalog):
        executor = QueryExecutor(catalog)
        assert set(executor.handlers) == set(OpKind) - {OpKind.PUSH}
