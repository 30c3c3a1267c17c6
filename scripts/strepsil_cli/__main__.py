#!/usr/bin/env python3
"""Entry point for running as module: python -m strepsil_cli"""
from strepsil_cli.cli import main

if __name__ == "__main__":
    main()
