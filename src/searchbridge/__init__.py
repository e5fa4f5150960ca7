"""SearchBridge — one query vocabulary for many full-text search engines."""

__version__ = "0.1.0"
