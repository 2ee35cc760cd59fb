#!/usr/bin/env python3
"""
Main entry point for the Typer-based socketworker CLI.

Delegates to the UI layer in socketworker.ui.cli to keep the console script
mapping stable.
"""

from socketworker.ui.cli import run as socketworker


if __name__ == "__main__":
    socketworker()
