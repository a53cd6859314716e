"""Escaping and sanitising helpers for untrusted input and output."""

from __future__ import annotations

import re
from typing import Any, Iterable

SEARCH_COLUMNS: frozenset[str] = frozenset({"term", "rom"})

LIKE_ESCAPE_CHAR = "\\"

# Characters with meaning inside an FTS4 phrase (prefix, first-token, quote).
_MATCH_SPECIAL = re.compile(r'["*^]')
_WHITESPACE = re.compile(r"\s+")

_PATH_PATTERN = re.compile(r"(?:[a-zA-Z]:\\|/)(?:[^\s/\\'\"]+[/\\])+[^\s/\\'\"]*")
_DATABASE_NAME = re.compile(r"database\s+['\"][^'\"]*['\"]", re.IGNORECASE)
_TABLE_NAME = re.compile(r"table\s+['\"][^'\"]*['\"]", re.IGNORECASE)
_SQL_PATTERNS = (
    (re.compile(r"SELECT\s+.*?FROM", re.IGNORECASE | re.DOTALL), "SELECT ... FROM"),
    (re.compile(r"INSERT\s+INTO\s+.*?VALUES", re.IGNORECASE | re.DOTALL), "INSERT INTO ... VALUES"),
    (re.compile(r"UPDATE\s+.*?SET", re.IGNORECASE | re.DOTALL), "UPDATE ... SET"),
    (re.compile(r"DELETE\s+FROM", re.IGNORECASE), "DELETE FROM"),
)
_STACK_LINE = re.compile(r'^\s*(at |File "|Traceback \(most recent call last\))')
_ROM_DISALLOWED = re.compile(r"[^a-zA-Z0-9_-]")
_PARENTHESISED = re.compile(r"\s*\([^)]*\)\s*")

GENERIC_ERROR = "An error occurred"


def escape_like(value: str) -> str:
    """Escape ``LIKE`` wildcards so ``value`` matches literally with ``ESCAPE '\\'``."""

    return (
        value.replace(LIKE_ESCAPE_CHAR, LIKE_ESCAPE_CHAR * 2)
        .replace("%", LIKE_ESCAPE_CHAR + "%")
        .replace("_", LIKE_ESCAPE_CHAR + "_")
    )


def escape_match(value: str) -> str:
    """Return ``value`` as a quoted FTS phrase with query syntax neutralised.

    Returns an empty string when nothing searchable remains.
    """

    cleaned = _WHITESPACE.sub(" ", _MATCH_SPECIAL.sub(" ", value)).strip()
    if not cleaned:
        return ""
    return f'"{cleaned}"'


def is_allowed_column(column: Any) -> bool:
    return isinstance(column, str) and column in SEARCH_COLUMNS


def is_allowed_dataset(dataset_id: Any, allowed: Iterable[str]) -> bool:
    """True when ``dataset_id`` is exactly one of ``allowed``."""

    if not isinstance(dataset_id, str) or not dataset_id:
        return False
    return dataset_id in set(allowed)


def sanitize_error_message(error: Any) -> str:
    """Strip paths, schema names, SQL text and stack lines from ``error``."""

    if isinstance(error, BaseException):
        error = str(error)
    if not isinstance(error, str):
        return GENERIC_ERROR

    sanitized = _PATH_PATTERN.sub("[path]", error)
    sanitized = _DATABASE_NAME.sub("database", sanitized)
    sanitized = _TABLE_NAME.sub("table", sanitized)
    for pattern, replacement in _SQL_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)

    lines = [line for line in sanitized.splitlines() if not _STACK_LINE.match(line)]
    return "\n".join(lines).strip() or GENERIC_ERROR


def sanitize_rom(rom: Any) -> str:
    """Keep only characters valid in a ROM short name."""

    if not rom:
        return ""
    return _ROM_DISALLOWED.sub("", str(rom))


def sanitize_game_name(name: str) -> str:
    """Drop parenthesised region/version notes and collapse whitespace."""

    stripped = _PARENTHESISED.sub(" ", name or "").strip()
    return _WHITESPACE.sub(" ", stripped)


__all__ = [
    "GENERIC_ERROR",
    "LIKE_ESCAPE_CHAR",
    "SEARCH_COLUMNS",
    "escape_like",
    "escape_match",
    "is_allowed_column",
    "is_allowed_dataset",
    "sanitize_error_message",
    "sanitize_game_name",
    "sanitize_rom",
]
