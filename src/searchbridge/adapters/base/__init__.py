"""Base adapter interface — Abstract classes for search engine connectors."""

from searchbridge.adapters.base.adapter import AdapterHealth, SearchAdapter
from searchbridge.adapters.base.registry import AdapterDescriptor, AdapterRegistry, BuiltinAdapter

__all__ = ["AdapterDescriptor", "AdapterHealth", "AdapterRegistry", "BuiltinAdapter", "SearchAdapter"]
