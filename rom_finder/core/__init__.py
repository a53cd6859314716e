"""Pure search logic for the ROM name finder: terms, queries, records, caches."""

from .cache import BoundedCache
from .errors import (
    ChannelTerminatedError,
    DatabaseNotLoadedError,
    DatasetRejectedError,
    DatasetUnavailableError,
    QueryError,
    RequestTimeoutError,
    RomFinderError,
    SearchValidationError,
    WorkerError,
)
from .query_builder import (
    DEFAULT_COLUMN,
    Predicate,
    SearchQuery,
    batch_terms,
    build_predicate,
    build_queries,
    build_select,
)
from .records import GameResult, row_to_game, rows_to_games
from .sanitize import (
    escape_like,
    escape_match,
    is_allowed_column,
    is_allowed_dataset,
    sanitize_error_message,
    sanitize_game_name,
    sanitize_rom,
)
from .terms import TermNormalizer, normalize_term, unique_terms

__all__ = [
    "BoundedCache",
    "ChannelTerminatedError",
    "DEFAULT_COLUMN",
    "DatabaseNotLoadedError",
    "DatasetRejectedError",
    "DatasetUnavailableError",
    "GameResult",
    "Predicate",
    "QueryError",
    "RequestTimeoutError",
    "RomFinderError",
    "SearchQuery",
    "SearchValidationError",
    "TermNormalizer",
    "WorkerError",
    "batch_terms",
    "build_predicate",
    "build_queries",
    "build_select",
    "escape_like",
    "escape_match",
    "is_allowed_column",
    "is_allowed_dataset",
    "normalize_term",
    "row_to_game",
    "rows_to_games",
    "sanitize_error_message",
    "sanitize_game_name",
    "sanitize_rom",
    "unique_terms",
]
