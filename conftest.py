"""Puts the project root on sys.path so tests can import run_query."""
