"""Command-line layer for socketworker."""
