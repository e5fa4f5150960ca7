"""Core — Query translation, facet normalization and adapter management."""
