"""Search Manager — Holds the active adapter and runs the search pipeline.

The manager is an explicit handle: construct it from resolved settings,
initialize it, and pass it to whoever needs to search. Callers needing
independent backends hold independent managers.

Pipeline (``execute``):
  SearchRequest → [Translator] → filter_by / sort_by
                → [Adapter] → SearchResultEnvelope (+ raw payload)
                → [FacetNormalizer] → envelope.facets
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from searchbridge.adapters.base.adapter import AdapterHealth, SearchAdapter
from searchbridge.adapters.base.exceptions import ConfigurationError
from searchbridge.adapters.base.registry import AdapterConstructor, AdapterRegistry
from searchbridge.config.settings import Settings
from searchbridge.core.facets import FacetNormalizer
from searchbridge.core.translator import QueryTranslator
from searchbridge.models.benchmark import BenchmarkResult
from searchbridge.models.facets import FacetKind
from searchbridge.models.filters import Filter, FilterOperator
from searchbridge.models.query import SearchOptions, SearchRequest
from searchbridge.models.result import SearchResultEnvelope

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


class SearchManager:
    """Owns one active search adapter and exposes the uniform search API.

    State machine:
      - uninitialized: no active adapter; data operations raise ``ConfigurationError``
      - active(A): every data operation is delegated to ``A``
      - ``switch_adapter(B)``: ``A`` is shut down, then ``B`` is built and initialized

    Adapter errors are never caught here; they reach the caller with the
    adapter name and operation attached. ``benchmark`` is the exception and
    records per-adapter failures as data.

    Example:
        >>> async with SearchManager(Settings()) as manager:
        ...     await manager.index("articles", docs)
        ...     envelope = await manager.search("articles", "solar")
        ...     await manager.switch_adapter("typesense", {"api_key": "xyz"})
    """

    def __init__(self, settings: Settings | None = None, registry: AdapterRegistry | None = None) -> None:
        self.settings = settings or Settings()
        self.registry = registry or AdapterRegistry()
        self.translator = QueryTranslator()
        self.normalizer = FacetNormalizer()
        self._adapter: SearchAdapter | None = None
        self._adapter_name: str | None = None
        self._overrides: dict[str, Any] = {}

    async def initialize(self) -> None:
        """Activate the configured default adapter."""
        await self.switch_adapter(self.settings.search.default_adapter)

    async def shutdown(self) -> None:
        await self._release()

    async def __aenter__(self) -> SearchManager:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    # ── Adapter management ───────────────────────────────────────────────

    @property
    def adapter(self) -> SearchAdapter:
        """The active adapter.

        Raises:
            ConfigurationError: If no adapter is active.
        """
        if self._adapter is None:
            raise ConfigurationError("No active adapter; call initialize() or switch_adapter() first")
        return self._adapter

    @property
    def current_adapter_name(self) -> str | None:
        return self._adapter_name

    @property
    def available_adapters(self) -> list[str]:
        return self.registry.available

    def register_adapter(self, name: str, constructor: AdapterConstructor, *, override: bool = False) -> None:
        """Make a custom adapter available to ``switch_adapter``.

        Constructor options are read from ``settings.adapters.custom[name]``.
        """
        self.registry.register(name, constructor, override=override)

    async def switch_adapter(self, name: str, overrides: dict[str, Any] | None = None) -> SearchAdapter:
        """Replace the active adapter with a new instance of ``name``.

        The name is resolved before anything else changes, so an unknown
        name leaves the current adapter active. The current adapter is then
        shut down before the replacement is constructed. If the replacement
        fails to initialize, no adapter is active afterwards.

        Args:
            name: Built-in or registered adapter name.
            overrides: Constructor options merged over the configured ones.

        Raises:
            UnknownAdapterError: If ``name`` is not known.
        """
        descriptor = self.registry.resolve(name)
        options = {**self.settings.adapters.options_for(name), **(overrides or {})}

        await self._release()

        adapter = descriptor.constructor(**options)
        await adapter.initialize()
        self._adapter = adapter
        self._adapter_name = name
        self._overrides = dict(overrides or {})
        logger.info("Switched to adapter: %s", name)
        return adapter

    async def configure_adapter(self, options: dict[str, Any]) -> None:
        """Reconfigure the active adapter; the options survive a benchmark."""
        await self.adapter.configure(options)
        self._overrides.update(options)

    async def health_check(self) -> AdapterHealth:
        return await self.adapter.health_check()

    async def _release(self) -> None:
        adapter, self._adapter, self._adapter_name = self._adapter, None, None
        if adapter is None:
            return
        try:
            await adapter.shutdown()
            logger.info("Shut down adapter: %s", adapter.name)
        except Exception:
            logger.warning("Error shutting down adapter: %s", adapter.name, exc_info=True)

    # ── Indexing ─────────────────────────────────────────────────────────

    async def index(self, collection: str, documents: Sequence[dict[str, Any]]) -> int:
        """Index ``documents`` in batches of ``indexing.batch_size``.

        Returns:
            The number of documents sent.
        """
        adapter = self.adapter
        batch_size = self.settings.indexing.batch_size
        for start in range(0, len(documents), batch_size):
            batch = list(documents[start : start + batch_size])
            await adapter.index(collection, batch)
            logger.debug("Indexed %d document(s) into %s/%s", len(batch), adapter.name, collection)
        logger.info("Indexed %d document(s) into %s/%s", len(documents), adapter.name, collection)
        return len(documents)

    async def add_document(self, collection: str, document: dict[str, Any]) -> None:
        await self.adapter.add_document(collection, document)

    async def update_document(self, collection: str, document_id: str, partial: dict[str, Any]) -> None:
        await self.adapter.update_document(collection, document_id, partial)

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self.adapter.delete_document(collection, document_id)

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        return await self.adapter.get_document(collection, document_id)

    async def delete_index(self, collection: str) -> None:
        await self.adapter.delete_index(collection)

    async def index_exists(self, collection: str) -> bool:
        return await self.adapter.index_exists(collection)

    # ── Search ───────────────────────────────────────────────────────────

    async def search(
        self,
        collection: str,
        query: str,
        options: SearchOptions | dict[str, Any] | None = None,
    ) -> SearchResultEnvelope:
        """Low-level search with pre-rendered filter/sort expressions."""
        return await self.adapter.search(collection, query, self._resolve_options(options))

    async def execute(self, collection: str, request: SearchRequest) -> SearchResultEnvelope:
        """Run a generic ``SearchRequest`` against the active adapter.

        Filters the backend cannot express yield an empty envelope without a
        backend call.
        """
        adapter = self.adapter
        filters = [*request.filters, *self._facet_filters(request)]
        translated = self.translator.translate(filters, request.sort, adapter.dialect)
        limit = self._clamp(request.limit if request.limit is not None else self.settings.search.default_limit)

        if translated.unsupported:
            logger.info("Filters unsupported by %s; returning an empty result set", adapter.name)
            envelope = SearchResultEnvelope.empty(adapter.name, offset=request.offset, limit=limit)
        else:
            options = SearchOptions(
                limit=limit,
                offset=request.offset,
                sort_by=translated.sort_by,
                filters=translated.filter_by,
                facets=[spec.field for spec in request.facets] or None,
                highlight_fields=list(request.highlight_fields) or None,
                retrieve_fields=list(request.retrieve_fields) or None,
                fuzziness=request.fuzziness and self.settings.search.enable_fuzzy,
                max_facet_values=self.settings.search.max_facet_values,
                extra=dict(request.extra),
            )
            envelope = await adapter.search(collection, request.query, options)

        if request.facets:
            envelope.facets = self.normalizer.normalize(
                request.facets,
                envelope.raw_response,
                adapter.facet_format,
                request.facet_filters,
            )
        return envelope

    def _facet_filters(self, request: SearchRequest) -> list[Filter]:
        """Applied term-facet selections as ``IN`` filters.

        Range, histogram and date selections are expressed by the caller
        through regular filters.
        """
        kinds = {spec.field: spec.kind for spec in request.facets}
        return [
            Filter(field=field, operator=FilterOperator.IN, value=list(values))
            for field, values in request.facet_filters.items()
            if values and kinds.get(field, FacetKind.TERMS) is FacetKind.TERMS
        ]

    def _resolve_options(self, options: SearchOptions | dict[str, Any] | None) -> SearchOptions:
        if options is None:
            options = SearchOptions(limit=self.settings.search.default_limit)
        elif isinstance(options, dict):
            options = SearchOptions.model_validate({"limit": self.settings.search.default_limit, **options})
        elif "limit" not in options.model_fields_set:
            options = options.model_copy(update={"limit": self.settings.search.default_limit})
        if options.limit > self.settings.search.max_limit:
            options = options.model_copy(update={"limit": self.settings.search.max_limit})
        return options

    def _clamp(self, limit: int) -> int:
        return min(limit, self.settings.search.max_limit)

    # ── Benchmark ────────────────────────────────────────────────────────

    async def benchmark(
        self,
        collection: str,
        query: str,
        iterations: int | None = None,
        adapters: Sequence[str] | None = None,
    ) -> dict[str, BenchmarkResult]:
        """Time ``iterations`` searches against each built-in adapter in turn.

        Adapters run one after another. A failing adapter is recorded as
        ``BenchmarkResult(error=...)`` and the run continues. The adapter
        active before the call (with its overrides) is restored afterwards.

        Raises:
            ValueError: If ``iterations`` is lower than 1.
        """
        iterations = iterations if iterations is not None else self.settings.performance.benchmark_iterations
        if iterations < 1:
            raise ValueError(f"iterations must be at least 1, got {iterations}")

        previous_name, previous_overrides = self._adapter_name, dict(self._overrides)
        options = SearchOptions(limit=self.settings.search.default_limit)
        results: dict[str, BenchmarkResult] = {}

        try:
            for name in adapters or self.registry.builtin:
                try:
                    adapter = await self.switch_adapter(name)
                    start = time.perf_counter()
                    for _ in range(iterations):
                        await adapter.search(collection, query, options)
                    results[name] = BenchmarkResult.from_timing(time.perf_counter() - start, iterations)
                    logger.info(
                        "Benchmark %s: %d queries in %.4fs",
                        name,
                        iterations,
                        results[name].total_time,
                    )
                except Exception as e:
                    logger.warning("Benchmark failed for adapter %s: %s", name, e)
                    results[name] = BenchmarkResult.failed(str(e))
        finally:
            if previous_name is not None:
                await self.switch_adapter(previous_name, previous_overrides)
            else:
                await self._release()

        return results
