"""Repository owning the single open dataset handle."""

from __future__ import annotations

import threading
from typing import Callable, List, Optional

from rom_finder.core.errors import (
    DatabaseNotLoadedError,
    QueryError,
    WorkerError,
)
from rom_finder.core.query_builder import SearchQuery
from rom_finder.core.records import GameResult, rows_to_games
from rom_finder.utils.observability import get_logger

from .channel import WorkerChannel
from .worker import ACTION_EXEC, ACTION_OPEN, QueryResult

HandleListener = Callable[[Optional[str]], None]


class GameDatasetRepository:
    """Opens one dataset at a time in the worker and runs queries against it.

    Listeners registered with :meth:`add_handle_listener` are called with the
    new dataset id (or ``None``) whenever the handle changes, so caches built
    on top of the repository can be dropped.
    """

    def __init__(self, channel: Optional[WorkerChannel] = None) -> None:
        self.channel = channel or WorkerChannel()
        self._lock = threading.RLock()
        self._dataset_id: Optional[str] = None
        self._loaded = False
        self._listeners: List[HandleListener] = []
        self._logger = get_logger(__name__).bind(component="dataset_repository")

    @property
    def dataset_id(self) -> Optional[str]:
        return self._dataset_id

    def is_loaded(self) -> bool:
        return self._loaded

    def add_handle_listener(self, listener: HandleListener) -> None:
        self._listeners.append(listener)

    def _notify(self, dataset_id: Optional[str]) -> None:
        for listener in list(self._listeners):
            listener(dataset_id)

    def open(self, buffer: bytes, dataset_id: str) -> None:
        """Release any current handle, then open ``buffer`` in a fresh worker."""

        with self._lock:
            if self._loaded or self.channel.running:
                self.close()

            self._logger.info(
                "Opening dataset",
                context={"dataset_id": dataset_id, "bytes": len(buffer)},
            )
            self.channel.request(ACTION_OPEN, buffer=bytes(buffer))
            self._dataset_id = dataset_id
            self._loaded = True
        self._notify(dataset_id)

    def execute(self, query: SearchQuery) -> QueryResult:
        if not self._loaded:
            raise DatabaseNotLoadedError("exec issued before a dataset was opened")
        try:
            result = self.channel.request(ACTION_EXEC, sql=query.sql, params=list(query.params))
        except WorkerError as exc:
            raise QueryError(str(exc)) from exc
        if not isinstance(result, QueryResult):
            raise QueryError(f"Unexpected worker payload {type(result).__name__}")
        return result

    def find_games(self, query: SearchQuery) -> List[GameResult]:
        result = self.execute(query)
        return rows_to_games(result.columns, result.values, query.include_clones)

    def close(self) -> None:
        """Terminate the worker, rejecting anything still in flight."""

        with self._lock:
            previous = self._dataset_id
            self.channel.terminate()
            self._loaded = False
            self._dataset_id = None
        if previous is not None:
            self._logger.info("Dataset closed", context={"dataset_id": previous})
        self._notify(None)


__all__ = ["GameDatasetRepository", "HandleListener"]
