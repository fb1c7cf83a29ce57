"""Entry point for ``python -m gof5``.

The daemon supervisor re-executes the program through this module, so the
child runs the same code as the parent regardless of how it was installed.
"""

import sys

from gof5.cli import main

if __name__ == "__main__":
    sys.exit(main())
