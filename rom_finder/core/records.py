"""Game record schema and row deserialisation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from .errors import QueryError

GAMES_TABLE = "games"

# Column order produced by the search queries; see ``query_builder``.
RESULT_COLUMNS = ("rom", "name")
RESULT_COLUMNS_WITH_CLONES = ("rom", "name", "cloneOf")


@dataclass(frozen=True)
class GameResult:
    """A matching game.

    ``clone_of`` is the parent's display name. It is only meaningful when
    ``clone_resolved`` is set, i.e. the search was run with clones included.
    """

    rom: str
    name: str
    clone_of: Optional[str] = None
    clone_resolved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"rom": self.rom, "name": self.name}
        if self.clone_resolved:
            payload["cloneOf"] = self.clone_of
        return payload


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def row_to_game(row: Sequence[Any], include_clones: bool) -> GameResult:
    """Map a positional result row to a :class:`GameResult`."""

    expected = len(RESULT_COLUMNS_WITH_CLONES if include_clones else RESULT_COLUMNS)
    if len(row) != expected:
        raise QueryError(f"Expected {expected} columns per row, got {len(row)}")

    rom = _text(row[0])
    if not rom:
        raise QueryError("Result row without a ROM name")
    name = _text(row[1]) or ""

    if include_clones:
        return GameResult(rom=rom, name=name, clone_of=_text(row[2]), clone_resolved=True)
    return GameResult(rom=rom, name=name)


def rows_to_games(
    columns: Sequence[str],
    rows: Sequence[Sequence[Any]],
    include_clones: bool,
) -> list[GameResult]:
    """Validate the column header once, then deserialise every row."""

    expected = RESULT_COLUMNS_WITH_CLONES if include_clones else RESULT_COLUMNS
    if tuple(columns) != expected:
        raise QueryError(f"Unexpected result columns {tuple(columns)!r}")
    return [row_to_game(row, include_clones) for row in rows]


__all__ = [
    "GAMES_TABLE",
    "GameResult",
    "RESULT_COLUMNS",
    "RESULT_COLUMNS_WITH_CLONES",
    "row_to_game",
    "rows_to_games",
]
