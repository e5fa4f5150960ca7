"""Typesense adapter."""
