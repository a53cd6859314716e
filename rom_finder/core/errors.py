"""Exception taxonomy for the ROM name finder.

Every error carries a ``user_message`` that is safe to display. The
exception's ``str()`` may hold more detail for logs and must not be shown
to users.
"""

from __future__ import annotations

from typing import Optional

ERR_SEARCH_TERM_EMPTY = "Please input at least one arcade game name"
ERR_SEARCH_TERM_SHORT = "Names should have at least {min_length} characters"
ERR_DB_SELECT = "Please select a ROMset"
ERR_COLUMN = "Unsupported search column"
ERR_DB_REJECTED = "The selected ROMset is not available"
ERR_DB_FETCH = "Failed to fetch database"
ERR_DB_NOT_LOADED = "Database not loaded. Call load_database first."
ERR_QUERY = "The search could not be completed"
ERR_TIMEOUT = "The search timed out; please retry"
ERR_CANCELLED = "The search was cancelled"
ERR_UNKNOWN = "An unexpected error occurred"


class RomFinderError(Exception):
    """Base class for all finder errors."""

    default_message = ERR_UNKNOWN

    def __init__(self, detail: Optional[str] = None, *, user_message: Optional[str] = None) -> None:
        self.user_message = user_message or self.default_message
        super().__init__(detail or self.user_message)


class SearchValidationError(RomFinderError):
    """Raised for caller input rejected before reaching the worker."""

    default_message = ERR_SEARCH_TERM_EMPTY


class DatasetRejectedError(RomFinderError):
    """Raised when a dataset id is not in the allow-list."""

    default_message = ERR_DB_REJECTED


class DatasetUnavailableError(RomFinderError):
    """Raised when the dataset file cannot be fetched."""

    default_message = ERR_DB_FETCH


class DatabaseNotLoadedError(RomFinderError):
    default_message = ERR_DB_NOT_LOADED


class WorkerError(RomFinderError):
    """Raised when the worker reports a failed request."""


class QueryError(RomFinderError):
    default_message = ERR_QUERY


class RequestTimeoutError(RomFinderError):
    default_message = ERR_TIMEOUT


class ChannelTerminatedError(RomFinderError):
    """Raised for requests still pending when the worker is terminated."""

    default_message = ERR_CANCELLED


__all__ = [
    "ERR_CANCELLED",
    "ERR_COLUMN",
    "ERR_DB_FETCH",
    "ERR_DB_NOT_LOADED",
    "ERR_DB_REJECTED",
    "ERR_DB_SELECT",
    "ERR_QUERY",
    "ERR_SEARCH_TERM_EMPTY",
    "ERR_SEARCH_TERM_SHORT",
    "ERR_TIMEOUT",
    "ERR_UNKNOWN",
    "ChannelTerminatedError",
    "DatabaseNotLoadedError",
    "DatasetRejectedError",
    "DatasetUnavailableError",
    "QueryError",
    "RequestTimeoutError",
    "RomFinderError",
    "SearchValidationError",
    "WorkerError",
]
