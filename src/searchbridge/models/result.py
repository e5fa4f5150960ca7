"""Result models — The uniform envelope returned by every adapter.

Scores are backend-native: a Typesense ``text_match`` value, a MeiliSearch
``_rankingScore`` and an FTS5 BM25 rank live on unrelated scales and must
not be compared across adapters.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from searchbridge.models.facets import FacetResult


class Hit(BaseModel):
    """A single matching document."""

    id: str = Field(description="Document identifier")
    score: float = Field(default=0.0, description="Backend-native relevance score")
    highlights: dict[str, str] = Field(default_factory=dict, description="Highlighted snippet per field")
    document: dict[str, Any] = Field(default_factory=dict, description="Stored document")


class PageInfo(BaseModel):
    """Paging window of a result set."""

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=10, ge=0)
    offset: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)

    @classmethod
    def from_window(cls, *, offset: int, limit: int, total_found: int) -> PageInfo:
        if limit <= 0:
            return cls(page=1, per_page=0, offset=offset, total_pages=0)
        return cls(
            page=offset // limit + 1,
            per_page=limit,
            offset=offset,
            total_pages=-(-total_found // limit),
        )


class SearchResultEnvelope(BaseModel):
    """Backend-independent search result.

    ``raw_response`` keeps the decoded backend payload for facet
    normalization; it is not part of the serialized envelope.
    """

    hits: list[Hit] = Field(default_factory=list)
    total_found: int = Field(default=0, ge=0)
    page_info: PageInfo = Field(default_factory=PageInfo)
    facets: dict[str, FacetResult] | None = Field(default=None)
    adapter: str = Field(default="", description="Name of the adapter that served the request")
    processing_time_ms: int = Field(default=0, ge=0)
    raw_response: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)

    @classmethod
    def empty(cls, adapter: str, *, offset: int = 0, limit: int = 10) -> SearchResultEnvelope:
        return cls(adapter=adapter, page_info=PageInfo.from_window(offset=offset, limit=limit, total_found=0))
