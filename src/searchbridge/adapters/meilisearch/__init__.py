"""MeiliSearch adapter."""
