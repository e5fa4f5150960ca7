"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (if specified)
  2. Environment variables (SEARCHBRIDGE_ prefix)
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class TypesenseNode(BaseModel):
    """One Typesense cluster node."""

    host: str = Field(default="localhost", description="Node hostname")
    port: int = Field(default=8108, description="Node port")
    protocol: str = Field(default="http", description="http or https")

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


class EmbeddedAdapterSettings(BaseModel):
    """Embedded (SQLite FTS5 file) adapter configuration."""

    storage_path: str = Field(default="storage/search", description="Directory holding '<collection>.index' files")
    searchable_fields: list[str] = Field(
        default_factory=lambda: ["title", "content"],
        description="Document fields indexed for full-text search",
    )
    fuzziness: bool = Field(default=False, description="Enable typo tolerance for every search")
    fuzzy_prefix_length: int = Field(default=1, ge=0, description="Leading characters a fuzzy match must share")


class TypesenseAdapterSettings(BaseModel):
    """Typesense adapter configuration."""

    api_key: str = Field(default="", description="Typesense API key")
    nodes: list[TypesenseNode] = Field(
        default_factory=lambda: [TypesenseNode()],
        description="Cluster nodes, tried in order on connection failure",
    )
    searchable_fields: str = Field(default="title,content", description="Value of the 'query_by' parameter")
    fields: list[dict[str, Any]] = Field(
        default_factory=lambda: [
            {"name": "title", "type": "string"},
            {"name": "content", "type": "string"},
            {"name": ".*", "type": "auto", "facet": True},
        ],
        description="Schema fields used when a collection is auto-created",
    )
    default_sorting_field: str | None = Field(default=None, description="Schema default sorting field")
    connection_timeout_seconds: float = Field(default=2.0, gt=0, description="HTTP timeout per request")
    num_retries: int = Field(default=3, ge=0, description="Retries on connection failure")
    retry_interval_seconds: float = Field(default=1.0, ge=0, description="Fixed wait between retries")

    @field_validator("nodes", mode="before")
    @classmethod
    def _parse_nodes(cls, v: Any) -> Any:
        """Parse nodes from a JSON string (env var) or a single URL."""
        if isinstance(v, str):
            import json

            try:
                return json.loads(v)
            except (json.JSONDecodeError, TypeError):
                from urllib.parse import urlparse

                parsed = urlparse(v if "://" in v else f"http://{v}")
                return [{"host": parsed.hostname or "localhost", "port": parsed.port or 8108, "protocol": parsed.scheme}]
        return v


class MeilisearchAdapterSettings(BaseModel):
    """MeiliSearch adapter configuration."""

    url: str = Field(default="http://localhost:7700", description="MeiliSearch instance URL")
    api_key: str | None = Field(default=None, description="Master key or API key")
    settings: dict[str, Any] = Field(
        default_factory=lambda: {
            "rankingRules": ["words", "typo", "proximity", "attribute", "sort", "exactness"],
            "searchableAttributes": ["title", "content"],
            "displayedAttributes": ["*"],
        },
        description="Index settings applied when documents are indexed",
    )
    highlight_fields: list[str] = Field(
        default_factory=lambda: ["title", "content"], description="Default 'attributesToHighlight'"
    )
    timeout: float = Field(default=30.0, gt=0, description="HTTP request timeout in seconds")
    num_retries: int = Field(default=3, ge=0, description="Retries on connection failure")
    retry_interval_seconds: float = Field(default=1.0, ge=0, description="Fixed wait between retries")
    task_timeout_seconds: float = Field(default=30.0, gt=0, description="Maximum wait for a write task")
    task_poll_interval_seconds: float = Field(default=0.05, gt=0, description="Delay between task status polls")


class AdapterSettings(BaseModel):
    """Per-adapter connection settings."""

    embedded: EmbeddedAdapterSettings = Field(default_factory=EmbeddedAdapterSettings)
    typesense: TypesenseAdapterSettings = Field(default_factory=TypesenseAdapterSettings)
    meilisearch: MeilisearchAdapterSettings = Field(default_factory=MeilisearchAdapterSettings)
    custom: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Constructor options for caller-registered adapters, by name"
    )

    def options_for(self, name: str) -> dict[str, Any]:
        """Constructor keyword arguments for the adapter registered as ``name``."""
        section = getattr(self, name, None) if name in ("embedded", "typesense", "meilisearch") else None
        if isinstance(section, BaseModel):
            return section.model_dump()
        return dict(self.custom.get(name, {}))


class SearchSettings(BaseModel):
    """Search behavior configuration."""

    default_adapter: str = Field(default="embedded", description="Adapter activated on startup")
    default_limit: int = Field(default=10, ge=1, description="Hits per page when the caller sets no limit")
    max_limit: int = Field(default=100, ge=1, description="Upper bound applied to every requested limit")
    max_facet_values: int = Field(default=100, ge=1, description="Values per facet requested from backends")
    enable_fuzzy: bool = Field(default=True, description="Allow callers to request fuzzy matching")


class IndexingSettings(BaseModel):
    """Bulk indexing configuration."""

    batch_size: int = Field(default=1000, ge=1, description="Documents sent per index call")


class PerformanceSettings(BaseModel):
    """Cache and benchmark configuration (the cache itself lives with the caller)."""

    cache_enabled: bool = Field(default=True, description="Whether callers should cache search results")
    cache_ttl: int = Field(default=3600, ge=0, description="Result cache TTL in seconds")
    enable_benchmark: bool = Field(default=False, description="Allow the benchmark command")
    benchmark_iterations: int = Field(default=100, ge=1, description="Default iterations per adapter")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the SEARCHBRIDGE_ prefix.
    Nested settings use double underscores: SEARCHBRIDGE_SEARCH__DEFAULT_ADAPTER=typesense

    Example:
        SEARCHBRIDGE_SEARCH__DEFAULT_ADAPTER=meilisearch
        SEARCHBRIDGE_ADAPTERS__MEILISEARCH__URL=http://search:7700
        SEARCHBRIDGE_ADAPTERS__TYPESENSE__API_KEY=xyz
    """

    model_config = {
        "env_prefix": "SEARCHBRIDGE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    app_name: str = Field(default="SearchBridge", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    search: SearchSettings = Field(default_factory=SearchSettings)
    adapters: AdapterSettings = Field(default_factory=AdapterSettings)
    indexing: IndexingSettings = Field(default_factory=IndexingSettings)
    performance: PerformanceSettings = Field(default_factory=PerformanceSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file win over environment variables; fields the
        file leaves out still come from the environment.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
