"""Entry point for running flatctl as a module."""

import sys

from flatctl.cli import main

if __name__ == "__main__":
    sys.exit(main())
