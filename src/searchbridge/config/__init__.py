"""Configuration management."""

from searchbridge.config.settings import Settings

__all__ = ["Settings"]
