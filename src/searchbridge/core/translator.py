"""Query Translator — Renders generic filters and sorts in a backend's syntax.

Algorithm:
  1. Partition the filter list into maximal runs of consecutive filters that
     share a combinator. Runs keep their input order.
  2. Render each condition through the dialect's operator table.
  3. An OR run becomes one parenthesized group joined with the OR token;
     every condition of an AND run becomes its own parenthesized group.
     All groups are joined with the AND token.
  4. Sorts render as ``field:direction`` pairs, comma-joined; relevance,
     random and distance sorts use the dialect's own syntax.

Empty inputs render to ``None`` so the parameter is omitted from the
backend call altogether.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from itertools import groupby

from searchbridge.adapters.base.exceptions import UnknownAdapterError
from searchbridge.core.dialects import BUILTIN_DIALECTS, UNSUPPORTED, Dialect, Rendering
from searchbridge.models.filters import Combinator, Filter
from searchbridge.models.sorting import SortSpec, validate_sort_list

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterRun:
    """Consecutive filters sharing one combinator."""

    combinator: Combinator
    filters: tuple[Filter, ...]


@dataclass(frozen=True)
class TranslatedQuery:
    """Backend-native filter and sort expressions.

    ``unsupported`` is set when a filter could not be expressed; the caller
    must then return an empty result set instead of querying the backend.
    """

    filter_by: str | None = None
    sort_by: str | None = None
    unsupported: bool = False


def partition_runs(filters: Iterable[Filter]) -> list[FilterRun]:
    """Group consecutive filters by combinator, preserving order."""
    return [FilterRun(combinator, tuple(run)) for combinator, run in groupby(filters, key=lambda f: f.combinator)]


def resolve_dialect(target: Dialect | str) -> Dialect:
    if isinstance(target, Dialect):
        return target
    try:
        return BUILTIN_DIALECTS[str(target)]
    except KeyError:
        raise UnknownAdapterError(
            f"No filter dialect for adapter '{target}'", adapter=str(target), operation="translate"
        ) from None


class QueryTranslator:
    """Stateless translator from generic filters/sorts to backend syntax.

    Example:
        >>> translator = QueryTranslator()
        >>> translator.translate_filters(filters, "typesense")
        '(price:=[500..2000]) && (category:=["electronics","computers"])'
    """

    def translate_filters(self, filters: Sequence[Filter], target: Dialect | str) -> Rendering | None:
        """Render ``filters`` for ``target`` (a dialect or built-in adapter name).

        Returns:
            The filter expression, ``None`` for an empty list, or
            ``UNSUPPORTED`` if any condition has no rendering.
        """
        if not filters:
            return None
        dialect = resolve_dialect(target)

        groups: list[str] = []
        for run in partition_runs(filters):
            rendered: list[str] = []
            for condition in run.filters:
                expression = dialect.render_condition(condition)
                if expression is UNSUPPORTED:
                    logger.debug(
                        "Filter %s %s on '%s' unsupported by %s",
                        condition.operator.name,
                        condition.value,
                        condition.field,
                        dialect.name,
                    )
                    return UNSUPPORTED
                rendered.append(expression)

            if run.combinator is Combinator.OR:
                groups.append(dialect.group(rendered, dialect.or_token))
            else:
                groups.extend(dialect.group([expression], dialect.and_token) for expression in rendered)

        return dialect.and_token.join(groups)

    def translate_sort(self, sort: Sequence[SortSpec], target: Dialect | str) -> str | None:
        """Render a sort list, or ``None`` when nothing needs to be sent.

        Raises:
            ValueError: If the list holds more than one distance sort.
            BackendQueryError: If a sort kind cannot be expressed by the backend.
        """
        if not sort:
            return None
        validate_sort_list(sort)
        dialect = resolve_dialect(target)
        parts = [rendered for spec in sort if (rendered := dialect.render_sort(spec)) is not None]
        return dialect.sort_separator.join(parts) or None

    def translate(self, filters: Sequence[Filter], sort: Sequence[SortSpec], target: Dialect | str) -> TranslatedQuery:
        filter_by = self.translate_filters(filters, target)
        sort_by = self.translate_sort(sort, target)
        if filter_by is UNSUPPORTED:
            return TranslatedQuery(filter_by=None, sort_by=sort_by, unsupported=True)
        return TranslatedQuery(filter_by=filter_by, sort_by=sort_by)
