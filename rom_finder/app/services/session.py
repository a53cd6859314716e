"""Caller-side search flow: validation, dataset selection and dispatch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from rom_finder.core.errors import (
    ERR_DB_SELECT,
    ERR_SEARCH_TERM_EMPTY,
    ERR_SEARCH_TERM_SHORT,
    ERR_UNKNOWN,
    RomFinderError,
    SearchValidationError,
)
from rom_finder.core.query_builder import DEFAULT_COLUMN
from rom_finder.core.records import GameResult
from rom_finder.core.sanitize import sanitize_error_message
from rom_finder.core.terms import TermNormalizer

from ...utils.observability import get_logger
from .search_service import GameSearchService


@dataclass
class SearchOutcome:
    """Everything a presentation layer needs to render one search."""

    terms: Tuple[str, ...] = ()
    results: Optional[List[GameResult]] = None
    dataset_id: Optional[str] = None
    include_clones: bool = True
    execution_time: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SearchSession:
    """Turns raw form input into service calls.

    Validation failures never reach the worker. Errors are returned as
    display-ready messages on the outcome; the previously selected dataset
    and cached results are left as they were.
    """

    def __init__(
        self,
        service: GameSearchService,
        *,
        normalizer: Optional[TermNormalizer] = None,
        min_term_length: int = 3,
    ) -> None:
        self.service = service
        self.normalizer = normalizer or TermNormalizer()
        self.min_term_length = max(0, int(min_term_length))
        self.selected_dataset: Optional[str] = None
        self.last_outcome: Optional[SearchOutcome] = None
        self._logger = get_logger(__name__).bind(component="search_session")

    def validate(self, raw_text: Optional[str], dataset_id: Optional[str]) -> Tuple[str, ...]:
        """Return the normalised terms or raise :class:`SearchValidationError`."""

        if not raw_text or not raw_text.strip():
            raise SearchValidationError("Empty search input", user_message=ERR_SEARCH_TERM_EMPTY)

        short = [
            line.strip()
            for line in raw_text.splitlines()
            if line.strip() and len(line.strip()) < self.min_term_length
        ]
        if short:
            message = ERR_SEARCH_TERM_SHORT.format(min_length=self.min_term_length)
            raise SearchValidationError(f"{len(short)} names below minimum length", user_message=message)

        if not dataset_id:
            raise SearchValidationError("No dataset selected", user_message=ERR_DB_SELECT)

        terms = self.normalizer.normalize(raw_text)
        if not terms:
            raise SearchValidationError("Input normalised to nothing", user_message=ERR_SEARCH_TERM_EMPTY)
        return terms

    def _ensure_dataset(self, dataset_id: str) -> None:
        service = self.service
        if service.is_loaded() and service.dataset_id != dataset_id:
            self._logger.info(
                "Switching dataset",
                context={"previous": service.dataset_id, "dataset_id": dataset_id},
            )
        service.load_database(dataset_id)
        self.selected_dataset = dataset_id

    def search(
        self,
        raw_text: Optional[str],
        dataset_id: Optional[str],
        include_clones: bool = True,
        column: str = DEFAULT_COLUMN,
    ) -> SearchOutcome:
        outcome = SearchOutcome(dataset_id=dataset_id, include_clones=include_clones)
        try:
            outcome.terms = self.validate(raw_text, dataset_id)
            self._ensure_dataset(dataset_id)  # type: ignore[arg-type]

            if len(outcome.terms) == 1:
                outcome.results = self.service.find_one(outcome.terms[0], include_clones, column)
            else:
                outcome.results = self.service.find_many(outcome.terms, include_clones, column)
            outcome.execution_time = self.service.last_execution_time() or 0.0
        except RomFinderError as exc:
            outcome.results = None
            outcome.error = sanitize_error_message(exc.user_message)
        except Exception as exc:
            self._logger.exception(
                "Unexpected search failure",
                context={"error_type": type(exc).__name__},
            )
            outcome.results = None
            outcome.error = ERR_UNKNOWN

        self.last_outcome = outcome
        return outcome

    def close(self) -> None:
        self.service.terminate()
        self.selected_dataset = None


__all__ = ["SearchOutcome", "SearchSession"]
