#!/usr/bin/env python3
"""Entry point for running hostbench as a module: python -m hostbench"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
