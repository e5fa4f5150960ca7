"""Base search adapter — Abstract interface for all search engine connectors.

Every search backend must implement this interface to integrate with SearchBridge.
The adapter is responsible for:
  1. Creating, filling and dropping collections on the backend
  2. Executing searches and returning a ``SearchResultEnvelope``
  3. Declaring its filter/sort dialect and raw facet format
  4. Reporting health status

Errors raised by the backend client are wrapped once, here at the adapter
boundary, into ``SearchEngineError`` subclasses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, Field, ValidationError

from searchbridge.adapters.base.exceptions import ConfigurationError
from searchbridge.models.facets import FacetFormat
from searchbridge.models.query import SearchOptions
from searchbridge.models.result import SearchResultEnvelope

if TYPE_CHECKING:
    from searchbridge.core.dialects import Dialect


class AdapterHealth(BaseModel):
    """Health status of a search adapter."""

    status: str = Field(description="Health status: healthy, degraded, unhealthy")
    latency_ms: int = Field(default=0, description="Latency of last health check in ms")
    last_check: str | None = Field(default=None, description="ISO timestamp of last health check")
    message: str | None = Field(default=None, description="Additional health message")


class SearchAdapter(ABC):
    """Abstract base class for search engine adapters.

    All adapters must implement the nine data operations (``index``,
    ``add_document``, ``update_document``, ``delete_document``, ``search``,
    ``get_document``, ``delete_index``, ``index_exists``, ``configure``) plus
    the ``initialize`` / ``shutdown`` / ``health_check`` lifecycle.

    Adapters keep their settings in a pydantic model (``config_model``);
    ``configure()`` validates new options against it.
    """

    config_model: ClassVar[type[BaseModel] | None] = None

    def __init__(self, **config: Any) -> None:
        self._config = self._validate_config(config)
        self._initialized = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique adapter name (e.g., 'typesense', 'meilisearch')."""

    @property
    def config(self) -> Any:
        return self._config

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def dialect(self) -> Dialect:
        """Filter/sort syntax of this backend. Defaults to no structured filters."""
        from searchbridge.core.dialects import NO_FILTERS

        return NO_FILTERS

    @property
    def facet_format(self) -> FacetFormat:
        """Shape of raw aggregation payloads. Defaults to no aggregation support."""
        return FacetFormat.NONE

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Open connections, pools or files.

        Subclasses call ``super().initialize()`` once they are ready.
        """
        self._initialized = True

    async def shutdown(self) -> None:
        """Release connections. Safe to call more than once."""
        self._initialized = False

    @abstractmethod
    async def health_check(self) -> AdapterHealth:
        """Check the health of the search backend."""

    async def configure(self, options: dict[str, Any]) -> None:
        """Merge ``options`` into the adapter configuration.

        An initialized adapter is re-initialized so the new settings take
        effect on the next call.

        Raises:
            ConfigurationError: If the merged configuration is invalid.
        """
        self._config = self._validate_config({**self._dump_config(), **options})
        if self._initialized:
            await self.shutdown()
            await self.initialize()

    # ── Indexing ─────────────────────────────────────────────────────────

    @abstractmethod
    async def index(self, collection: str, documents: list[dict[str, Any]]) -> None:
        """Insert or replace ``documents``, creating the collection if needed."""

    @abstractmethod
    async def add_document(self, collection: str, document: dict[str, Any]) -> None:
        """Insert or replace a single document."""

    @abstractmethod
    async def update_document(self, collection: str, document_id: str, partial: dict[str, Any]) -> None:
        """Merge ``partial`` into the stored document ``document_id``."""

    @abstractmethod
    async def delete_document(self, collection: str, document_id: str) -> None:
        """Remove one document."""

    @abstractmethod
    async def delete_index(self, collection: str) -> None:
        """Drop a collection and all its documents."""

    @abstractmethod
    async def index_exists(self, collection: str) -> bool:
        """Whether the collection exists on the backend."""

    # ── Search ───────────────────────────────────────────────────────────

    @abstractmethod
    async def search(self, collection: str, query: str, options: SearchOptions) -> SearchResultEnvelope:
        """Execute a search against ``collection``.

        Args:
            collection: Collection (index) name.
            query: Full-text query; empty or ``"*"`` matches everything.
            options: Paging, rendered filter/sort expressions, facets, highlights.

        Returns:
            The normalized result envelope. Facets are left for the
            ``FacetNormalizer``; the raw payload travels in ``raw_response``.
        """

    @abstractmethod
    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        """Retrieve a stored document, or ``None`` if it does not exist."""

    # ── Helpers ──────────────────────────────────────────────────────────

    def _validate_config(self, config: dict[str, Any]) -> Any:
        if self.config_model is None:
            return dict(config)
        try:
            return self.config_model.model_validate(config)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration: {e.error_count()} error(s)",
                adapter=self.name,
                operation="configure",
                cause=e,
            ) from e

    def _dump_config(self) -> dict[str, Any]:
        if isinstance(self._config, BaseModel):
            return self._config.model_dump()
        return dict(self._config)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} initialized={self._initialized}>"
