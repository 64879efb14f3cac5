#!/usr/bin/env python3
"""Command-line interface for climark."""

import os
import sys

# Add current directory to path to allow imports when run from a checkout
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


def main():
    """Console script entry point."""
    from main import main as run_main

    sys.exit(run_main())


if __name__ == "__main__":
    main()
