"""Adapter Registry — Resolves adapter names to constructors.

Built-in backends form a closed set (``BuiltinAdapter``) whose classes are
imported lazily, so an unused backend never costs an import. Callers can
register additional constructors under new names; a custom registration
replaces an earlier one of the same name, but a built-in name is only
replaced when ``override=True`` is passed explicitly.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from searchbridge.adapters.base.adapter import SearchAdapter
from searchbridge.adapters.base.exceptions import ConfigurationError, UnknownAdapterError

logger = logging.getLogger(__name__)

AdapterConstructor = Callable[..., SearchAdapter]


class BuiltinAdapter(StrEnum):
    EMBEDDED = "embedded"
    TYPESENSE = "typesense"
    MEILISEARCH = "meilisearch"


# (module_path, class_name) for each built-in backend
_BUILTIN_MAP: dict[BuiltinAdapter, tuple[str, str]] = {
    BuiltinAdapter.EMBEDDED: ("searchbridge.adapters.embedded.adapter", "EmbeddedAdapter"),
    BuiltinAdapter.TYPESENSE: ("searchbridge.adapters.typesense.adapter", "TypesenseAdapter"),
    BuiltinAdapter.MEILISEARCH: ("searchbridge.adapters.meilisearch.adapter", "MeilisearchAdapter"),
}


@dataclass(frozen=True)
class AdapterDescriptor:
    """A named adapter constructor. Identity is the name."""

    name: str
    constructor: AdapterConstructor
    builtin: bool = False


def _load_builtin(kind: BuiltinAdapter) -> type[SearchAdapter]:
    module_path, class_name = _BUILTIN_MAP[kind]
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


class AdapterRegistry:
    """Registry of constructible search adapters.

    Example:
        >>> registry = AdapterRegistry()
        >>> registry.register("memory", InMemoryAdapter)
        >>> adapter = registry.create("typesense", api_key="xyz")
        >>> async with registry.open("embedded", storage_path="/tmp/idx") as adapter:
        ...     await adapter.index("articles", docs)
    """

    def __init__(self) -> None:
        self._custom: dict[str, AdapterDescriptor] = {}
        self._overrides: dict[BuiltinAdapter, AdapterDescriptor] = {}

    def register(self, name: str, constructor: AdapterConstructor, *, override: bool = False) -> None:
        """Register an adapter constructor under ``name``.

        Args:
            name: Adapter name.
            constructor: A ``SearchAdapter`` subclass or any callable returning one.
            override: Required to replace a built-in adapter.

        Raises:
            TypeError: If ``constructor`` is not callable or is a class that
                does not subclass ``SearchAdapter``.
            ConfigurationError: If ``name`` is built-in and ``override`` is false.
        """
        if not callable(constructor):
            raise TypeError(f"Adapter constructor for '{name}' must be callable")
        if inspect.isclass(constructor) and not issubclass(constructor, SearchAdapter):
            raise TypeError(f"Adapter class for '{name}' must subclass SearchAdapter")

        if name in BuiltinAdapter.__members__.values():
            if not override:
                raise ConfigurationError(
                    f"'{name}' is a built-in adapter; pass override=True to replace it",
                    adapter=name,
                    operation="register",
                )
            kind = BuiltinAdapter(name)
            self._overrides[kind] = AdapterDescriptor(name=name, constructor=constructor, builtin=True)
            logger.warning("Overriding built-in adapter: %s", name)
            return

        if name in self._custom:
            logger.warning("Overwriting existing adapter registration: %s", name)
        self._custom[name] = AdapterDescriptor(name=name, constructor=constructor)
        logger.info("Registered adapter: %s", name)

    def resolve(self, name: str) -> AdapterDescriptor:
        """Look up the descriptor for ``name``.

        Raises:
            UnknownAdapterError: If ``name`` is neither built-in nor registered.
        """
        if name in self._custom:
            return self._custom[name]
        try:
            kind = BuiltinAdapter(name)
        except ValueError:
            raise UnknownAdapterError(
                f"No adapter registered with name '{name}'. Available adapters: {self.available}",
                adapter=name,
                operation="resolve",
            ) from None
        if kind in self._overrides:
            return self._overrides[kind]
        return AdapterDescriptor(name=kind.value, constructor=_load_builtin(kind), builtin=True)

    def create(self, name: str, **config: Any) -> SearchAdapter:
        """Construct an uninitialized adapter.

        Raises:
            UnknownAdapterError: If ``name`` is not registered.
        """
        descriptor = self.resolve(name)
        adapter = descriptor.constructor(**config)
        if not isinstance(adapter, SearchAdapter):
            raise TypeError(f"Constructor for '{name}' returned {type(adapter).__name__}, not a SearchAdapter")
        return adapter

    @asynccontextmanager
    async def open(self, name: str, **config: Any) -> AsyncIterator[SearchAdapter]:
        """Yield an initialized adapter that is shut down on exit, even on error."""
        adapter = self.create(name, **config)
        try:
            await adapter.initialize()
            yield adapter
        finally:
            await adapter.shutdown()

    def is_registered(self, name: str) -> bool:
        return name in self._custom or name in BuiltinAdapter.__members__.values()

    @property
    def builtin(self) -> list[str]:
        return [kind.value for kind in BuiltinAdapter]

    @property
    def available(self) -> list[str]:
        """Built-in names followed by custom names, in registration order."""
        return self.builtin + list(self._custom)
