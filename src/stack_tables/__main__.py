import sys

from stack_tables.repl import main

sys.exit(main())
