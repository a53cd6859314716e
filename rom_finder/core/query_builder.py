"""SQL construction for game name searches.

A single term is matched with one ``LIKE`` per word, all of which must be
present in the search column. Several terms are OR-ed together in one FTS
``MATCH`` expression, which relies on the full-text tokenizer instead of
substring matching and is therefore less forgiving of partial words.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from .errors import ERR_COLUMN, SearchValidationError
from .records import GAMES_TABLE
from .sanitize import LIKE_ESCAPE_CHAR, escape_like, escape_match, is_allowed_column

DEFAULT_COLUMN = "term"
DEFAULT_MAX_BATCH_CHARS = 1000

MODE_SUBSTRING = "substring"
MODE_FULLTEXT = "fulltext"

_MATCH_JOINER = " OR "


@dataclass(frozen=True)
class Predicate:
    """A ``WHERE`` clause with its bound parameters."""

    clause: str
    params: Tuple[Any, ...]
    mode: str


@dataclass(frozen=True)
class SearchQuery:
    """A complete statement ready for the worker."""

    sql: str
    params: Tuple[Any, ...]
    include_clones: bool
    mode: str


def _checked_column(column: str) -> str:
    if not is_allowed_column(column):
        raise SearchValidationError(f"Column {column!r} is not searchable", user_message=ERR_COLUMN)
    return column


def substring_predicate(term: str, column: str = DEFAULT_COLUMN) -> Predicate:
    """Require every word of ``term`` to appear somewhere in ``column``."""

    column = _checked_column(column)
    tokens = term.split()
    if not tokens:
        raise SearchValidationError("Empty search term")

    clauses = [f"g1.{column} LIKE ? ESCAPE '{LIKE_ESCAPE_CHAR}'" for _ in tokens]
    params = tuple(f"%{escape_like(token)}%" for token in tokens)
    return Predicate(" AND ".join(clauses), params, MODE_SUBSTRING)


def match_expression(terms: Sequence[str]) -> str:
    phrases = [phrase for phrase in (escape_match(term) for term in terms) if phrase]
    return _MATCH_JOINER.join(phrases)


def fulltext_predicate(terms: Sequence[str], column: str = DEFAULT_COLUMN) -> Predicate:
    """Match any of ``terms`` as a phrase using the FTS index on ``column``."""

    column = _checked_column(column)
    expression = match_expression(terms)
    if not expression:
        raise SearchValidationError("No searchable terms")
    return Predicate(f"g1.{column} MATCH ?", (expression,), MODE_FULLTEXT)


def _parents_only(predicate: Predicate) -> Predicate:
    return Predicate(f"{predicate.clause} AND g1.cloneOf IS NULL", predicate.params, predicate.mode)


def build_predicate(
    terms: Sequence[str],
    include_clones: bool,
    column: str = DEFAULT_COLUMN,
) -> Predicate:
    """Build the search predicate, restricted to parent entries unless ``include_clones``."""

    if not terms:
        raise SearchValidationError("No search terms supplied")

    if len(terms) == 1:
        predicate = substring_predicate(terms[0], column)
    else:
        predicate = fulltext_predicate(terms, column)

    return predicate if include_clones else _parents_only(predicate)


def build_select(predicate: Predicate, include_clones: bool) -> SearchQuery:
    """Wrap ``predicate`` in the projection, clone join and ordering."""

    if include_clones:
        # Parent and clones share a group key so they sort next to each other.
        sql = (
            "SELECT g1.rom AS rom, g1.name AS name, g2.name AS cloneOf "
            f"FROM {GAMES_TABLE} g1 "
            f"LEFT JOIN {GAMES_TABLE} g2 ON g1.cloneOf = g2.docid "
            f"WHERE {predicate.clause} "
            "ORDER BY COALESCE(g1.cloneOf, g1.docid), g1.name"
        )
    else:
        sql = (
            "SELECT g1.rom AS rom, g1.name AS name "
            f"FROM {GAMES_TABLE} g1 "
            f"WHERE {predicate.clause} "
            "ORDER BY g1.docid, g1.name"
        )
    return SearchQuery(sql, predicate.params, include_clones, predicate.mode)


def batch_terms(terms: Sequence[str], max_chars: int = DEFAULT_MAX_BATCH_CHARS) -> List[List[str]]:
    """Split ``terms`` so each batch's MATCH expression stays within ``max_chars``.

    A term longer than ``max_chars`` on its own still gets its own batch.
    """

    batches: List[List[str]] = []
    current: List[str] = []
    current_length = 0
    for term in terms:
        phrase_length = len(escape_match(term))
        if not phrase_length:
            continue
        added = phrase_length + (len(_MATCH_JOINER) if current else 0)
        if current and current_length + added > max_chars:
            batches.append(current)
            current, current_length = [], 0
            added = phrase_length
        current.append(term)
        current_length += added
    if current:
        batches.append(current)
    return batches


def build_queries(
    terms: Sequence[str],
    include_clones: bool,
    column: str = DEFAULT_COLUMN,
    *,
    max_batch_chars: int = DEFAULT_MAX_BATCH_CHARS,
) -> List[SearchQuery]:
    """Return the statements to run, in order, for ``terms``."""

    if len(terms) <= 1:
        return [build_select(build_predicate(terms, include_clones, column), include_clones)]

    queries: List[SearchQuery] = []
    for batch in batch_terms(terms, max_batch_chars):
        # A batch of one is still a full-text lookup, so results do not depend on batching.
        predicate = fulltext_predicate(batch, column)
        if not include_clones:
            predicate = _parents_only(predicate)
        queries.append(build_select(predicate, include_clones))
    if not queries:
        raise SearchValidationError("No searchable terms")
    return queries


__all__ = [
    "DEFAULT_COLUMN",
    "DEFAULT_MAX_BATCH_CHARS",
    "MODE_FULLTEXT",
    "MODE_SUBSTRING",
    "Predicate",
    "SearchQuery",
    "batch_terms",
    "build_predicate",
    "build_queries",
    "build_select",
    "fulltext_predicate",
    "match_expression",
    "substring_predicate",
]
