"""Fuzzy term expansion for the embedded adapter.

Typo tolerance follows length-based limits:
  - 1-2 chars: exact only
  - 3-5 chars: at most 1 edit
  - 6+ chars: at most 2 edits
"""

from __future__ import annotations

from collections.abc import Iterable


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Edit distance between ``s1`` and ``s2``.

    With ``max_distance`` set, returns ``max_distance + 1`` as soon as the
    distance is known to exceed it.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("hello", "hallo")
        1
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)
    if len(s1) > len(s2):
        s1, s2 = s2, s1
    if max_distance is not None and len(s2) - len(s1) > max_distance:
        return max_distance + 1

    previous = list(range(len(s1) + 1))
    for j, c2 in enumerate(s2, start=1):
        current = [j]
        for i, c1 in enumerate(s1, start=1):
            current.append(
                min(
                    previous[i] + 1,
                    current[i - 1] + 1,
                    previous[i - 1] + (c1 != c2),
                )
            )
        if max_distance is not None and min(current) > max_distance:
            return max_distance + 1
        previous = current
    return previous[-1]


def max_edit_distance(term_length: int) -> int:
    if term_length <= 2:
        return 0
    if term_length <= 5:
        return 1
    return 2


def expand_term(term: str, vocabulary: Iterable[str], prefix_length: int = 1) -> list[str]:
    """Vocabulary terms within the allowed edit distance of ``term``.

    Candidates must share the first ``prefix_length`` characters with
    ``term``. Results are ordered closest first, then alphabetically; the
    term itself is always first.
    """
    term = term.lower()
    limit = max_edit_distance(len(term))
    prefix = term[:prefix_length]

    matches: list[tuple[int, str]] = []
    for candidate in vocabulary:
        candidate = candidate.lower()
        if candidate == term or not candidate.startswith(prefix):
            continue
        distance = levenshtein_distance(term, candidate, limit)
        if distance <= limit:
            matches.append((distance, candidate))

    matches.sort()
    return [term] + [candidate for _, candidate in matches]
