"""
Main entry point for running the package as a module.

Usage:
    python -m photomigrate scan
    python -m photomigrate run --tenant AGENCY
    python -m photomigrate status --tenant AGENCY
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
