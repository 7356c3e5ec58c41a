"""Interactive REPL for the stack_tables postfix query language."""

from __future__ import annotations

import argparse
import logging
import readline  # noqa: F401 - enables line editing in input()
import sys
from enum import Enum
from pathlib import Path

from stack_tables.errors import StackTablesError
from stack_tables.parsing import QueryCompiler
from stack_tables.query_executor import QueryExecutor
from stack_tables.storage import Catalog
from stack_tables.table import Table
from stack_tables.types import ColumnType, Value

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path("tables")

# Display widths for result columns
NARROW_WIDTH = 5
TEXT_WIDTH = 20


class Mode(Enum):
    """Input mode of the REPL."""

    COMMAND = "command"
    QUERY = "query"


def column_width(column_type: ColumnType) -> int:
    return TEXT_WIDTH if column_type is ColumnType.STR else NARROW_WIDTH


def display_value(value: Value) -> str:
    if isinstance(value, ColumnType):
        return value.value
    return str(value)


def format_table(table: Table) -> str:
    """Format a table as right-aligned columns, header first."""
    widths = [column_width(col.type) for col in table.schema.columns]
    lines = ["".join(f"{col.name:>{w}}" for col, w in zip(table.schema.columns, widths))]
    for row in table.rows:
        lines.append("".join(f"{display_value(v):>{w}}" for v, w in zip(row, widths)))
    return "\n".join(lines)


def print_result(result: Table | None) -> None:
    """Print a query result table, if the query produced one."""
    if result is None:
        return
    print(format_table(result))


def paren_depth(text: str) -> int:
    """Return how many parentheses are left open."""
    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
    return depth


def has_balanced_parens(text: str) -> bool:
    """Check whether a query is complete (no parenthesis left open)."""
    return paren_depth(text) <= 0


def split_queries(content: str) -> list[str]:
    """Split script text into queries.

    Each non-blank line is a query unless it leaves a parenthesis open, in
    which case following lines are joined to it until the parentheses
    balance. Lines starting with ``--`` are comments.
    """
    queries = []
    current: list[str] = []
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("--"):
            continue
        if not stripped and not current:
            continue
        current.append(line)
        text = "\n".join(current)
        if has_balanced_parens(text):
            if text.strip():
                queries.append(text.strip())
            current = []

    if current and "\n".join(current).strip():
        queries.append("\n".join(current).strip())
    return queries


def run_query(compiler: QueryCompiler, executor: QueryExecutor, text: str) -> bool:
    """Compile and execute one query, printing its result or error.

    Returns:
        True if the query ran without error.
    """
    try:
        operations = compiler.compile(text)
        result = executor.execute(operations)
    except StackTablesError as e:
        print(f"Error: {e}")
        return False
    print_result(result)
    return True


def load_catalog(data_dir: Path) -> Catalog | None:
    """Load the database, reporting a failure on stderr."""
    try:
        return Catalog.load(data_dir)
    except StackTablesError as e:
        print(f"Error loading database: {e}", file=sys.stderr)
        return None


def flush_catalog(catalog: Catalog) -> int:
    """Write the catalog back to disk; returns the process exit status."""
    try:
        catalog.flush()
    except StackTablesError as e:
        print(f"Error saving database: {e}", file=sys.stderr)
        return 1
    return 0


def run_repl(data_dir: Path) -> int:
    """Run the interactive REPL."""
    catalog = load_catalog(data_dir)
    if catalog is None:
        return 1

    compiler = QueryCompiler()
    executor = QueryExecutor(catalog)

    # Command history
    history_file = Path.home() / ".stq_history"
    try:
        readline.read_history_file(history_file)
    except (FileNotFoundError, OSError):
        pass

    mode = Mode.COMMAND
    try:
        while True:
            prompt = "> " if mode is Mode.COMMAND else "query > "
            try:
                line = input(prompt)
            except EOFError:
                print()
                break

            if mode is Mode.COMMAND:
                words = line.split()
                if not words:
                    continue
                command = words[0]
                if command == "exit":
                    break
                elif command == "query":
                    mode = Mode.QUERY
                elif command == "help":
                    print_help()
                else:
                    print(f"Unknown command: {command}")
                continue

            # Query mode: keep reading while a parenthesis is open
            query = line
            try:
                while not has_balanced_parens(query):
                    query += "\n" + input("query : ")
            except EOFError:
                print()
                break

            text = query.strip()
            if not text:
                continue
            if text == "exit":
                mode = Mode.COMMAND
                continue
            run_query(compiler, executor, text)

    finally:
        try:
            readline.set_history_length(1000)
            readline.write_history_file(history_file)
        except OSError:
            pass

    return flush_catalog(catalog)


def print_help() -> None:
    """Print help information."""
    print("""
STQ - stack_tables postfix query language

COMMANDS:
  query                    Enter query mode
  exit                     Leave query mode, or quit from command mode
  help                     Show this help

QUERIES (operands first, operator last):
  <cols...> <table> select Project columns of a table (* for all)
  <values...> <table> insert
                           Append a row, one value per column
  <table> delete           Delete rows matching the pending conditions
  filter                   Keep rows of the selected table matching the conditions
  <table> (<col> <Type>)... create
                           Create a table; types are Int and Str
  <table> drop             Remove a table and its files

CONDITIONS:
  <col> <value> ==         Also != < >  (< and > include equality)
  and, or                  Combine the two previous conditions

Parentheses may span several lines; the query runs once they balance.
Double-quoted text may contain spaces.
""")


def run_file(file_path: Path, data_dir: Path, verbose: bool = False) -> int:
    """Execute queries from a file.

    Args:
        file_path: Path to the file containing queries
        data_dir: Database directory
        verbose: If True, print each query before executing

    Returns:
        0 on success, 1 on error
    """
    try:
        content = file_path.read_text()
    except OSError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    queries = split_queries(content)
    if not queries:
        print("No queries found in file", file=sys.stderr)
        return 1

    catalog = load_catalog(data_dir)
    if catalog is None:
        return 1

    compiler = QueryCompiler()
    executor = QueryExecutor(catalog)
    status = 0
    for query_text in queries:
        if verbose:
            for i, line in enumerate(query_text.split("\n")):
                prefix = ">>> " if i == 0 else "... "
                print(f"{prefix}{line}")

        if not run_query(compiler, executor, query_text):
            status = 1
            break

    return flush_catalog(catalog) or status


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    arg_parser = argparse.ArgumentParser(
        description="Interactive REPL for the stack_tables postfix query language"
    )
    arg_parser.add_argument(
        "data_dir",
        type=Path,
        nargs="?",
        default=DEFAULT_DATA_DIR,
        help="Directory holding the .tbls/.tbl table files (default: ./tables)",
    )
    arg_parser.add_argument(
        "-c", "--command",
        type=str,
        help="Execute a single query and exit",
    )
    arg_parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Execute queries from a file and exit",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print each query before executing (for -f/--file)",
    )
    arg_parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for diagnostics on stderr (default: WARNING)",
    )

    args = arg_parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s: %(message)s")

    if args.file:
        if not args.file.exists():
            print(f"Error: File not found: {args.file}", file=sys.stderr)
            return 1
        return run_file(args.file, args.data_dir, args.verbose)

    if args.command:
        catalog = load_catalog(args.data_dir)
        if catalog is None:
            return 1
        ok = run_query(QueryCompiler(), QueryExecutor(catalog), args.command)
        return flush_catalog(catalog) or (0 if ok else 1)

    return run_repl(args.data_dir)


if __name__ == "__main__":
    sys.exit(main())
