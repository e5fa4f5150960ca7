"""Facet Normalizer — Reshapes backend aggregation payloads into ``FacetResult``s.

Extraction is per backend format; everything after it works on a plain
``{value: count}`` distribution, so equivalent data yields identical
results whichever backend produced it.

  - Typesense: ``facet_counts = [{field_name, counts: [{value, count}], stats}]``
  - MeiliSearch: ``facetDistribution = {field: {value: count}}`` plus ``facetStats``
  - Backends without aggregations: structurally valid, empty results
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from searchbridge.models.facets import FacetFormat, FacetKind, FacetResult, FacetSpec, FacetValue, RangeBucket

logger = logging.getLogger(__name__)

_DATE_KEY_FORMATS = {"day": "%Y-%m-%d", "month": "%Y-%m", "year": "%Y"}
_DATE_LABEL_FORMATS = {"day": "%d %b %Y", "month": "%b %Y", "year": "%Y"}


@dataclass
class RawFacet:
    """Backend-neutral intermediate form: value counts and optional stats."""

    distribution: dict[str, int] = field(default_factory=dict)
    stats: dict[str, float] = field(default_factory=dict)


def format_number(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def range_label(bucket: RangeBucket) -> str:
    """``"{from} - {to}"``, ``"≥ {from}"`` or ``"≤ {to}"``."""
    if bucket.label:
        return bucket.label
    if bucket.from_ is not None and bucket.to is not None:
        return f"{format_number(bucket.from_)} - {format_number(bucket.to)}"
    if bucket.from_ is not None:
        return f"≥ {format_number(bucket.from_)}"
    return f"≤ {format_number(bucket.to)}"  # type: ignore[arg-type]


def range_token(bucket: RangeBucket) -> str:
    """Query-parameter form of a bucket: ``"0-50"``, ``"100-"``, ``"-50"``."""
    low = format_number(bucket.from_) if bucket.from_ is not None else ""
    high = format_number(bucket.to) if bucket.to is not None else ""
    return f"{low}-{high}"


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        number = float(str(value))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _to_datetime(value: Any) -> datetime | None:
    number = _to_number(value)
    if number is not None:
        return datetime.fromtimestamp(number, UTC)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


# ── Extraction ───────────────────────────────────────────────────────────


def _extract_typesense(raw: Mapping[str, Any]) -> dict[str, RawFacet]:
    facet_counts = raw.get("facet_counts") or []
    extracted: dict[str, RawFacet] = {}

    if isinstance(facet_counts, Mapping):
        entries: Iterable[tuple[str, Any, Any]] = ((name, counts, None) for name, counts in facet_counts.items())
    else:
        entries = ((item.get("field_name", ""), item.get("counts", []), item.get("stats")) for item in facet_counts)

    for name, counts, stats in entries:
        facet = RawFacet()
        for entry in counts or []:
            value = str(entry.get("value", ""))
            facet.distribution[value] = facet.distribution.get(value, 0) + int(entry.get("count", 0))
        if stats:
            facet.stats = {k: float(v) for k, v in stats.items() if k in ("min", "max", "avg", "sum") and v is not None}
        extracted[name] = facet
    return extracted


def _extract_meilisearch(raw: Mapping[str, Any]) -> dict[str, RawFacet]:
    distribution = raw.get("facetDistribution") or {}
    facet_stats = raw.get("facetStats") or {}
    extracted: dict[str, RawFacet] = {}
    for name in set(distribution) | set(facet_stats):
        extracted[name] = RawFacet(
            distribution={str(k): int(v) for k, v in (distribution.get(name) or {}).items()},
            stats={k: float(v) for k, v in (facet_stats.get(name) or {}).items() if v is not None},
        )
    return extracted


_EXTRACTORS = {
    FacetFormat.TYPESENSE: _extract_typesense,
    FacetFormat.MEILISEARCH: _extract_meilisearch,
}


class FacetNormalizer:
    """Turns raw backend aggregations into ``FacetResult`` objects.

    The normalizer is pure: it never calls a backend and the ``selected``
    flags depend only on the facet filters passed in.
    """

    def extract(self, raw_response: Mapping[str, Any], facet_format: FacetFormat) -> dict[str, RawFacet]:
        extractor = _EXTRACTORS.get(facet_format)
        if extractor is None:
            return {}
        return extractor(raw_response)

    def normalize(
        self,
        specs: Sequence[FacetSpec],
        raw_response: Mapping[str, Any],
        facet_format: FacetFormat,
        facet_filters: Mapping[str, Iterable[Any]] | None = None,
    ) -> dict[str, FacetResult]:
        """Produce one ``FacetResult`` per requested spec, keyed by field."""
        extracted = self.extract(raw_response, facet_format)
        applied = facet_filters or {}
        results: dict[str, FacetResult] = {}
        for spec in specs:
            raw = extracted.get(spec.field, RawFacet())
            selected = {str(v) for v in applied.get(spec.field, ())}
            results[spec.field] = self.normalize_facet(spec, raw, selected)
        if facet_format is FacetFormat.NONE and specs:
            logger.debug("Adapter has no aggregation support; returning empty facets")
        return results

    def normalize_facet(self, spec: FacetSpec, raw: RawFacet, selected: set[str]) -> FacetResult:
        handler = {
            FacetKind.TERMS: self._terms,
            FacetKind.RANGE: self._range,
            FacetKind.HISTOGRAM: self._histogram,
            FacetKind.DATE_HISTOGRAM: self._date_histogram,
            FacetKind.STATS: self._stats,
            FacetKind.CARDINALITY: self._cardinality,
        }[spec.kind]
        return handler(spec, raw, selected)

    # ── Per-kind handlers ────────────────────────────────────────────────

    def _result(self, spec: FacetSpec, **kwargs: Any) -> FacetResult:
        return FacetResult(field=spec.field, label=spec.display_label, type=spec.kind, **kwargs)

    def _label(self, spec: FacetSpec, value: Any, default: str) -> str:
        if spec.value_formatter is not None:
            return spec.value_formatter(value)
        return default

    def _terms(self, spec: FacetSpec, raw: RawFacet, selected: set[str]) -> FacetResult:
        items = list(raw.distribution.items())
        reverse = spec.order == "desc"
        if spec.sort == "key":
            items.sort(key=lambda item: item[0], reverse=reverse)
        else:
            items.sort(key=lambda item: item[0])
            items.sort(key=lambda item: item[1], reverse=reverse)
        values = [
            FacetValue(value=value, label=self._label(spec, value, value), count=count, selected=value in selected)
            for value, count in items[: spec.size]
        ]
        return self._result(spec, values=values, total=len(raw.distribution))

    def _range(self, spec: FacetSpec, raw: RawFacet, selected: set[str]) -> FacetResult:
        numeric = [(n, c) for v, c in raw.distribution.items() if (n := _to_number(v)) is not None]
        values = []
        for bucket in spec.ranges:
            key = bucket.key()
            label = range_label(bucket)
            values.append(
                FacetValue(
                    value=key,
                    label=self._label(spec, key, label),
                    count=sum(c for n, c in numeric if bucket.contains(n)),
                    selected=range_token(bucket) in selected or label in selected,
                )
            )
        return self._result(spec, values=values, total=len(values))

    def _histogram(self, spec: FacetSpec, raw: RawFacet, selected: set[str]) -> FacetResult:
        interval = float(spec.interval)  # type: ignore[arg-type]
        buckets: dict[float, int] = {}
        for value, count in raw.distribution.items():
            number = _to_number(value)
            if number is None:
                continue
            start = math.floor(number / interval) * interval
            buckets[start] = buckets.get(start, 0) + count
        values = []
        for start in sorted(buckets):
            default = f"{format_number(start)} - {format_number(start + interval)}"
            values.append(
                FacetValue(
                    value=start,
                    label=self._label(spec, start, default),
                    count=buckets[start],
                    selected=format_number(start) in selected,
                )
            )
        return self._result(spec, values=values, total=len(values))

    def _date_histogram(self, spec: FacetSpec, raw: RawFacet, selected: set[str]) -> FacetResult:
        interval = str(spec.interval)
        buckets: dict[str, tuple[datetime, int]] = {}
        for value, count in raw.distribution.items():
            moment = _to_datetime(value)
            if moment is None:
                logger.debug("Skipping unparseable date facet value %r on '%s'", value, spec.field)
                continue
            key = moment.strftime(_DATE_KEY_FORMATS[interval])
            first, total = buckets.get(key, (moment, 0))
            buckets[key] = (min(first, moment), total + count)
        values = []
        for key in sorted(buckets):
            moment, count = buckets[key]
            default = moment.strftime(_DATE_LABEL_FORMATS[interval])
            values.append(
                FacetValue(value=key, label=self._label(spec, key, default), count=count, selected=key in selected)
            )
        return self._result(spec, values=values, total=len(values))

    def _stats(self, spec: FacetSpec, raw: RawFacet, selected: set[str]) -> FacetResult:
        numeric = [(n, c) for v, c in raw.distribution.items() if (n := _to_number(v)) is not None]
        count = sum(c for _, c in numeric)
        stats = dict(raw.stats)
        if numeric:
            # backend stats are exact; the distribution may be truncated
            total = sum(n * c for n, c in numeric)
            computed = {
                "min": min(n for n, _ in numeric),
                "max": max(n for n, _ in numeric),
                "avg": total / count if count else 0.0,
                "sum": total,
            }
            for key, value in computed.items():
                stats.setdefault(key, value)
        if not stats:
            return self._result(spec, total=0)
        stats["count"] = float(count)
        return self._result(spec, total=count, stats=stats)

    def _cardinality(self, spec: FacetSpec, raw: RawFacet, selected: set[str]) -> FacetResult:
        return self._result(spec, total=len(raw.distribution))
