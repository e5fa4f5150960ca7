"""Embedded adapter — SQLite FTS5 file per collection."""
