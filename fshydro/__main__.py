"""
CLI entry point for fshydro.

This module enables running fshydro as a Python module:
    $ python -m fshydro run path/to/manifest.json
    $ python -m fshydro --version
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
