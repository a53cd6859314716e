"""Normalisation of free-form game names into search terms."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Tuple

from .cache import BoundedCache

# ASCII word characters only: dataset ``term`` columns are built the same way.
_NON_WORD = re.compile(r"[^\w]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def normalize_term(value: Optional[str]) -> str:
    """Lowercase ``value``, turn non-word characters into spaces and collapse them."""

    if not value:
        return ""
    lowered = str(value).lower()
    spaced = _NON_WORD.sub(" ", lowered)
    return _WHITESPACE.sub(" ", spaced).strip()


def unique_terms(values: Iterable[Optional[str]]) -> Tuple[str, ...]:
    """Normalise ``values`` dropping empties and duplicates, first-seen order kept."""

    seen: dict[str, None] = {}
    for value in values:
        term = normalize_term(value)
        if term:
            seen.setdefault(term, None)
    return tuple(seen)


class TermNormalizer:
    """Split multi-line input into a deduplicated, ordered tuple of terms.

    Results are memoised on the exact raw text, since forms resubmit the
    same input repeatedly.
    """

    def __init__(self, cache_size: int = 100) -> None:
        self._cache: BoundedCache[str, Tuple[str, ...]] = BoundedCache(cache_size)

    @property
    def cache(self) -> BoundedCache[str, Tuple[str, ...]]:
        return self._cache

    def normalize(self, raw_text: Optional[str]) -> Tuple[str, ...]:
        if not raw_text:
            return ()
        cached = self._cache.get(raw_text)
        if cached is not None:
            return cached
        terms = unique_terms(_LINE_BREAK.split(raw_text))
        self._cache.put(raw_text, terms)
        return terms

    __call__ = normalize


__all__ = ["TermNormalizer", "normalize_term", "unique_terms"]
