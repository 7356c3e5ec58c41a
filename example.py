"""Example usage of the stack_tables library."""

from pathlib import Path

from stack_tables import Catalog, QueryExecutor, compile_query
from stack_tables.repl import print_result

# Create a data directory for storage
data_dir = Path("./example_data")

# Load (or create) the database and flush it back when done
with Catalog.load(data_dir) as catalog:
    executor = QueryExecutor(catalog)

    if "people" not in catalog:
        executor.execute(compile_query("people (id Int) (name Str) (age Int) create"))

        people = [
            (1, "Alice", 30),
            (2, "Bob", 25),
            (3, "Charlie", 35),
            (4, "Diana", 28),
            (5, "Eve", 22),
            (6, "Frank", 45),
        ]

        print("Inserting people...")
        for person_id, name, age in people:
            executor.execute(compile_query(f'{person_id} "{name}" {age} people insert'))

    print("\nAll people in database:")
    print_result(executor.execute(compile_query("* people select")))

    print("\nPeople aged 30 or more:")
    print_result(executor.execute(compile_query("name age people select age 30 > filter")))

# Show files created
print(f"\nFiles created in {data_dir}:")
for f in sorted(data_dir.iterdir()):
    print(f"  {f.name} ({f.stat().st_size} bytes)")

print("\n" + "=" * 60)
print("You can now query this data using the STQ REPL:")
print(f"  stq {data_dir}")
print("\nExample queries (after typing 'query'):")
print("  * people select")
print("  name age people select age 25 == age 40 > or filter")
print('  name "Bob" == people delete')
