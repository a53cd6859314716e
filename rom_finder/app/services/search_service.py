"""Game search service: the search API consumed by presentation layers."""

from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from rom_finder.core.cache import BoundedCache
from rom_finder.core.errors import DatabaseNotLoadedError, RomFinderError
from rom_finder.core.query_builder import (
    DEFAULT_COLUMN,
    DEFAULT_MAX_BATCH_CHARS,
    build_queries,
)
from rom_finder.core.records import GameResult
from rom_finder.core.terms import unique_terms

from ..data.datasets import DatasetSource
from ..data.repository import GameDatasetRepository
from ...utils.observability import (
    add_span_attributes,
    create_counter,
    create_histogram,
    get_logger,
    observe_duration,
    record_exception,
    start_span,
)
from ...utils.telemetry import StructuredTelemetry

RESULT_CACHE = "results"

_metric_requests = create_counter(
    "romfinder_search_requests_total",
    "Game search requests received.",
    label_names=("mode",),
)
_metric_failures = create_counter(
    "romfinder_search_request_failures_total",
    "Game search requests that raised an exception.",
    label_names=("mode",),
)
_metric_duration = create_histogram(
    "romfinder_search_request_seconds",
    "Latency of game search requests.",
)
_metric_cache_hits = create_counter(
    "romfinder_cache_hits_total",
    "Cache hits recorded by the search service.",
    label_names=("cache",),
)
_metric_cache_misses = create_counter(
    "romfinder_cache_misses_total",
    "Cache misses recorded by the search service.",
    label_names=("cache",),
)
_metric_dataset_loads = create_counter(
    "romfinder_dataset_loads_total",
    "Dataset load attempts by outcome.",
    label_names=("outcome",),
)


def result_cache_key(terms: Sequence[str], include_clones: bool, column: str = DEFAULT_COLUMN) -> str:
    """Key for the result cache; ``terms`` must already be normalised and ordered."""

    return f"{'|'.join(terms)}::clones={int(bool(include_clones))}::column={column}"


class GameSearchService:
    """Finds games by approximate name in the currently loaded dataset.

    One instance is created per application session and handed to whatever
    needs it. It owns the result cache; the cache is emptied whenever the
    repository's dataset handle changes.
    """

    def __init__(
        self,
        *,
        source: DatasetSource,
        repository: Optional[GameDatasetRepository] = None,
        cache_ttl: Optional[float] = 300.0,
        cache_max_entries: int = 100,
        max_batch_chars: int = DEFAULT_MAX_BATCH_CHARS,
        telemetry: Optional[StructuredTelemetry] = None,
        time_fn: Optional[Callable[[], float]] = None,
    ) -> None:
        self.source = source
        self.repository = repository or GameDatasetRepository()
        self.telemetry = telemetry or StructuredTelemetry()
        self._max_batch_chars = max(1, int(max_batch_chars))
        self._results: BoundedCache[str, Tuple[GameResult, ...]] = BoundedCache(
            cache_max_entries, ttl=cache_ttl, time_fn=time_fn
        )
        self._latest_trace: Dict[str, Any] = {}
        # Bumped on every handle change; results computed under an older
        # generation are never cached.
        self._handle_generation = 0
        self._generation_lock = threading.Lock()
        self._logger = get_logger(__name__).bind(component="game_search_service")
        self.repository.add_handle_listener(self._on_handle_changed)

        self._logger.info(
            "Game search service initialised",
            context={
                "datasets": list(source.allowed),
                "cache_ttl": cache_ttl,
                "cache_max_entries": cache_max_entries,
                "max_batch_chars": self._max_batch_chars,
            },
        )

    # ------------------------------------------------------------------
    # Dataset lifecycle
    # ------------------------------------------------------------------
    @property
    def dataset_id(self) -> Optional[str]:
        return self.repository.dataset_id

    def is_loaded(self) -> bool:
        return self.repository.is_loaded()

    def load_database(self, dataset_id: str) -> None:
        """Fetch and open ``dataset_id``, replacing any dataset already open.

        Reloading the dataset that is already open is a no-op.
        """

        with start_span("dataset.load", {"dataset.id": str(dataset_id)[:64]}) as span:
            try:
                self.source.ensure_allowed(dataset_id)
                if self.is_loaded() and self.dataset_id == dataset_id:
                    _metric_dataset_loads.labels(outcome="reused").inc()
                    return

                self._logger.info("Dataset load requested", context={"dataset_id": dataset_id})
                with self.telemetry.timer("dataset.fetch", {"dataset_id": dataset_id}):
                    buffer = self.source.fetch(dataset_id)
                with self.telemetry.timer("dataset.open", {"dataset_id": dataset_id}):
                    self.repository.open(buffer, dataset_id)
            except RomFinderError as exc:
                _metric_dataset_loads.labels(outcome=type(exc).__name__).inc()
                record_exception(span, exc)
                self._logger.error(
                    "Dataset load failed",
                    context={"dataset_id": str(dataset_id)[:64], "error": exc.user_message},
                )
                raise

            _metric_dataset_loads.labels(outcome="loaded").inc()
            add_span_attributes(span, {"dataset.bytes": len(buffer)})
            self._logger.info(
                "Dataset load completed",
                context={"dataset_id": dataset_id, "bytes": len(buffer)},
            )

    def terminate(self) -> None:
        """Release the worker and drop cached results and pending requests."""

        self.repository.close()
        self._results.clear()

    def _on_handle_changed(self, dataset_id: Optional[str]) -> None:
        with self._generation_lock:
            self._handle_generation += 1
            self.clear_cached_results(reason="dataset_changed", dataset_id=dataset_id)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------
    def clear_cached_results(self, *, reason: str = "requested", dataset_id: Optional[str] = None) -> None:
        if len(self._results):
            self._logger.info(
                "Clearing search caches",
                context={"reason": reason, "entries": len(self._results), "dataset_id": dataset_id},
            )
        self._results.clear()

    @property
    def result_cache(self) -> BoundedCache[str, Tuple[GameResult, ...]]:
        return self._results

    def _record_cache_event(self, *, hit: bool, key_terms: int) -> None:
        metric = _metric_cache_hits if hit else _metric_cache_misses
        metric.labels(cache=RESULT_CACHE).inc()
        self.telemetry.increment("cache.hit" if hit else "cache.miss")
        log = self._logger.debug if hit else self._logger.info
        log(
            "Cache lookup %s",
            "hit" if hit else "miss",
            context={"cache": RESULT_CACHE, "terms": key_terms, "size": len(self._results)},
        )

    # ------------------------------------------------------------------
    # Search API
    # ------------------------------------------------------------------
    def find_one(self, term: str, include_clones: bool, column: str = DEFAULT_COLUMN) -> List[GameResult]:
        """Find games whose ``column`` contains every word of ``term``."""

        return self._search("find_one", unique_terms([term]), include_clones, column)

    def find_many(
        self,
        terms: Iterable[str],
        include_clones: bool,
        column: str = DEFAULT_COLUMN,
    ) -> List[GameResult]:
        """Find games matching any of ``terms`` with a full-text lookup."""

        return self._search("find_many", unique_terms(terms), include_clones, column)

    def get_latest_telemetry(self) -> Dict[str, Any]:
        if not self._latest_trace:
            return self.telemetry.latest_snapshot()
        return copy.deepcopy(self._latest_trace)

    def last_execution_time(self) -> Optional[float]:
        """Seconds spent on the most recent search, cache hits included."""

        return self.telemetry.last_duration("search.total")

    def _search(
        self,
        mode: str,
        terms: Tuple[str, ...],
        include_clones: bool,
        column: str,
    ) -> List[GameResult]:
        if not self.is_loaded():
            raise DatabaseNotLoadedError(f"{mode} called before load_database")

        telemetry = self.telemetry
        telemetry.start_trace(mode)
        telemetry.annotate("input.term_count", len(terms))
        telemetry.annotate("input.include_clones", include_clones)
        telemetry.annotate("input.column", column)
        _metric_requests.labels(mode=mode).inc()

        request_context = {
            "mode": mode,
            "terms": len(terms),
            "include_clones": include_clones,
            "column": column,
            "dataset_id": self.dataset_id,
        }
        self._logger.info("Search request received", context=request_context)
        self._logger.debug("Search terms", context={"terms": list(terms)})

        with start_span("search.request", request_context) as span:
            try:
                with observe_duration(_metric_duration), telemetry.timer("search.total"):
                    results = self._search_cached(terms, include_clones, column)
            except RomFinderError as exc:
                _metric_failures.labels(mode=mode).inc()
                telemetry.increment("search.failed")
                record_exception(span, exc)
                self._latest_trace = telemetry.snapshot()
                self._logger.error(
                    "Search request failed",
                    context={**request_context, "error": exc.user_message},
                )
                raise

            telemetry.annotate("result.count", len(results))
            telemetry.increment("search.completed")
            self._latest_trace = telemetry.snapshot()
            add_span_attributes(span, {"search.success": True, "result.total": len(results)})
            self._logger.info(
                "Search request completed",
                context={"mode": mode, "results": len(results)},
            )
            return results

    def _search_cached(
        self,
        terms: Tuple[str, ...],
        include_clones: bool,
        column: str,
    ) -> List[GameResult]:
        if not terms:
            return []

        generation = self._handle_generation
        key = result_cache_key(terms, include_clones, column)
        cached = self._results.get(key)
        if cached is not None:
            self._record_cache_event(hit=True, key_terms=len(terms))
            return list(cached)
        self._record_cache_event(hit=False, key_terms=len(terms))

        queries = build_queries(terms, include_clones, column, max_batch_chars=self._max_batch_chars)
        self.telemetry.annotate("query.batches", len(queries))

        results: List[GameResult] = []
        seen: set[str] = set()
        for index, query in enumerate(queries):
            with self.telemetry.timer("search.exec", {"batch": index, "mode": query.mode}):
                games = self.repository.find_games(query)
            for game in games:
                # Batches can overlap when a game matches terms from two batches.
                if len(queries) > 1 and game.rom in seen:
                    continue
                seen.add(game.rom)
                results.append(game)

        with self._generation_lock:
            stale = generation != self._handle_generation
            if not stale:
                self._results.put(key, tuple(results))
        if stale:
            self._logger.info(
                "Dataset changed during search; result not cached",
                context={"terms": len(terms), "dataset_id": self.dataset_id},
            )
        return results


__all__ = ["GameSearchService", "result_cache_key"]
