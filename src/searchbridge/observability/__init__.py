"""Observability — Logging setup."""
