"""Background worker that owns the in-memory SQLite dataset.

The worker is the only code that touches the ``sqlite3`` connection. It
receives :class:`WorkerRequest` messages on an inbox queue, processes them
one at a time and hands a :class:`WorkerResponse` for each to the
``post_message`` callback supplied by the channel.
"""

from __future__ import annotations

import itertools
import queue
import sqlite3
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from rom_finder.utils.observability import get_logger

ACTION_OPEN = "open"
ACTION_EXEC = "exec"


@dataclass(frozen=True)
class WorkerRequest:
    id: int
    action: str
    buffer: Optional[bytes] = None
    sql: Optional[str] = None
    params: Optional[Sequence[Any]] = None


@dataclass(frozen=True)
class WorkerResponse:
    id: int
    success: bool
    data: Any = None
    error: Optional[str] = None


@dataclass(frozen=True)
class QueryResult:
    """Rows returned by an ``exec`` request."""

    columns: tuple[str, ...]
    values: list[tuple[Any, ...]]


ResponseHandler = Callable[[WorkerResponse], None]

_STOP = object()
_worker_ids = itertools.count(1)


class DatasetWorker:
    """A daemon thread executing dataset requests sequentially."""

    def __init__(self, post_message: ResponseHandler) -> None:
        self._post_message = post_message
        self._inbox: "queue.Queue[Any]" = queue.Queue()
        self._db: Optional[sqlite3.Connection] = None
        self._terminated = threading.Event()
        name = f"rom-finder-worker-{next(_worker_ids)}"
        self._logger = get_logger(__name__).bind(component="dataset_worker", worker=name)
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()
        self._logger.info("Dataset worker started")

    @property
    def alive(self) -> bool:
        return self._thread.is_alive() and not self._terminated.is_set()

    def post_message(self, request: WorkerRequest) -> None:
        if self._terminated.is_set():
            raise RuntimeError("Worker has been terminated")
        self._inbox.put(request)

    def terminate(self, timeout: Optional[float] = 1.0) -> None:
        """Stop the worker; queued requests are dropped without responses."""

        if self._terminated.is_set():
            return
        self._terminated.set()
        self._inbox.put(_STOP)
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout)
        self._logger.info("Dataset worker terminated")

    def _run(self) -> None:
        try:
            while True:
                message = self._inbox.get()
                if message is _STOP or self._terminated.is_set():
                    break
                response = self._handle(message)
                if self._terminated.is_set():
                    continue
                try:
                    self._post_message(response)
                except Exception:
                    # The request stays pending in the channel until it times out.
                    self._logger.exception(
                        "Failed to deliver worker response",
                        context={"request_id": response.id},
                    )
        finally:
            if self._db is not None:
                self._db.close()
                self._db = None

    def _handle(self, request: WorkerRequest) -> WorkerResponse:
        try:
            if request.action == ACTION_OPEN:
                return WorkerResponse(request.id, True, self._open(request.buffer))
            if request.action == ACTION_EXEC:
                return WorkerResponse(request.id, True, self._exec(request.sql, request.params))
            raise ValueError(f"Unknown action: {request.action}")
        except Exception as exc:
            self._logger.warning(
                "Worker request failed",
                context={"request_id": request.id, "action": request.action, "error": str(exc)},
            )
            return WorkerResponse(request.id, False, error=str(exc) or "Unknown worker error")

    def _open(self, buffer: Optional[bytes]) -> dict[str, Any]:
        if not buffer:
            raise ValueError("No database buffer provided")

        connection = sqlite3.connect(":memory:")
        try:
            connection.deserialize(bytes(buffer))
        except sqlite3.Error:
            connection.close()
            raise

        if self._db is not None:
            self._db.close()
        self._db = connection
        self._logger.info("Dataset opened", context={"bytes": len(buffer)})
        return {"message": "Database opened successfully", "bytes": len(buffer)}

    def _exec(self, sql: Optional[str], params: Optional[Sequence[Any]]) -> QueryResult:
        if self._db is None:
            raise RuntimeError('Database not opened. Send an "open" request first.')
        if not sql:
            raise ValueError("No SQL query provided")

        cursor = self._db.execute(sql, tuple(params or ()))
        try:
            columns = tuple(column[0] for column in cursor.description or ())
            values = [tuple(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
        return QueryResult(columns, values)


__all__ = [
    "ACTION_EXEC",
    "ACTION_OPEN",
    "DatasetWorker",
    "QueryResult",
    "ResponseHandler",
    "WorkerRequest",
    "WorkerResponse",
]
