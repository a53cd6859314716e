"""Request/response channel between callers and the dataset worker.

Each request gets a unique id and a :class:`~concurrent.futures.Future`
stored in the pending table. The table belongs to the channel alone and an
entry leaves it exactly once: when the worker answers, when the caller's
wait times out, or when the channel is terminated. Responses may arrive in
any order; they are matched by id only.
"""

from __future__ import annotations

import itertools
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

from rom_finder.core.errors import ChannelTerminatedError, RequestTimeoutError, WorkerError
from rom_finder.core.sanitize import sanitize_error_message
from rom_finder.utils.observability import create_counter, get_logger

from .worker import DatasetWorker, ResponseHandler, WorkerRequest, WorkerResponse


class Worker(Protocol):
    def post_message(self, request: WorkerRequest) -> None: ...

    def terminate(self) -> None: ...


WorkerFactory = Callable[[ResponseHandler], Worker]

_requests_total = create_counter(
    "romfinder_worker_requests_total",
    "Requests dispatched to the dataset worker.",
    label_names=("action", "outcome"),
)


@dataclass(frozen=True)
class PendingRequest:
    id: int
    action: str
    future: "Future[Any]"


class WorkerChannel:
    """Dispatches requests to a lazily started worker and correlates responses."""

    def __init__(
        self,
        worker_factory: Optional[WorkerFactory] = None,
        *,
        request_timeout: Optional[float] = None,
    ) -> None:
        self._worker_factory: WorkerFactory = worker_factory or DatasetWorker
        self._request_timeout = request_timeout
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._pending: Dict[int, PendingRequest] = {}
        self._worker: Optional[Worker] = None
        self._logger = get_logger(__name__).bind(component="worker_channel")

    @property
    def running(self) -> bool:
        with self._lock:
            return self._worker is not None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending_ids(self) -> list[int]:
        with self._lock:
            return list(self._pending)

    def start(self) -> None:
        with self._lock:
            if self._worker is None:
                self._worker = self._worker_factory(self.handle_response)

    def dispatch(
        self,
        action: str,
        *,
        buffer: Optional[bytes] = None,
        sql: Optional[str] = None,
        params: Optional[Sequence[Any]] = None,
    ) -> PendingRequest:
        """Send a request without waiting; the returned future resolves later."""

        future: "Future[Any]" = Future()
        # A running future can no longer be cancelled by callers, so only the
        # channel ever completes it.
        future.set_running_or_notify_cancel()

        with self._lock:
            if self._worker is None:
                self._worker = self._worker_factory(self.handle_response)
            worker = self._worker
            request_id = next(self._ids)
            pending = PendingRequest(request_id, action, future)
            self._pending[request_id] = pending

        request = WorkerRequest(request_id, action, buffer=buffer, sql=sql, params=params)
        try:
            worker.post_message(request)
        except RuntimeError as exc:
            if self._take(request_id) is not None:
                future.set_exception(ChannelTerminatedError(str(exc)))
            _requests_total.labels(action=action, outcome="cancelled").inc()
            return pending

        self._logger.debug(
            "Request dispatched",
            context={"request_id": request_id, "action": action},
        )
        return pending

    def wait(self, pending: PendingRequest, timeout: Optional[float] = None) -> Any:
        """Block until ``pending`` resolves, applying the request timeout."""

        limit = self._request_timeout if timeout is None else timeout
        try:
            return pending.future.result(timeout=limit)
        except FutureTimeoutError:
            if self._take(pending.id) is None:
                # The response won the race; it is already set on the future.
                return pending.future.result()
            error = RequestTimeoutError(f"Request {pending.id} ({pending.action}) timed out after {limit}s")
            pending.future.set_exception(error)
            _requests_total.labels(action=pending.action, outcome="timeout").inc()
            self._logger.warning(
                "Request timed out",
                context={"request_id": pending.id, "action": pending.action, "timeout": limit},
            )
            raise error from None

    def request(
        self,
        action: str,
        *,
        buffer: Optional[bytes] = None,
        sql: Optional[str] = None,
        params: Optional[Sequence[Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        pending = self.dispatch(action, buffer=buffer, sql=sql, params=params)
        return self.wait(pending, timeout)

    def handle_response(self, response: WorkerResponse) -> None:
        """Resolve the pending request matching ``response.id``."""

        pending = self._take(response.id)
        if pending is None:
            self._logger.debug(
                "Dropping response without pending request",
                context={"request_id": response.id},
            )
            return

        if response.success:
            _requests_total.labels(action=pending.action, outcome="success").inc()
            self._logger.debug(
                "Request resolved",
                context={"request_id": response.id, "action": pending.action},
            )
            pending.future.set_result(response.data)
            return

        message = sanitize_error_message(response.error or "Unknown worker error")
        _requests_total.labels(action=pending.action, outcome="failure").inc()
        self._logger.warning(
            "Request failed in worker",
            context={"request_id": response.id, "action": pending.action, "error": message},
        )
        pending.future.set_exception(WorkerError(message, user_message=message))

    def terminate(self) -> None:
        """Stop the worker and reject every request still pending."""

        with self._lock:
            worker, self._worker = self._worker, None
            abandoned = list(self._pending.values())
            self._pending.clear()

        for pending in abandoned:
            _requests_total.labels(action=pending.action, outcome="cancelled").inc()
            pending.future.set_exception(
                ChannelTerminatedError(f"Request {pending.id} abandoned by terminate()")
            )

        if worker is not None:
            worker.terminate()
            self._logger.info(
                "Channel terminated",
                context={"abandoned_requests": len(abandoned)},
            )

    def _take(self, request_id: int) -> Optional[PendingRequest]:
        with self._lock:
            return self._pending.pop(request_id, None)


__all__ = ["PendingRequest", "Worker", "WorkerChannel", "WorkerFactory"]
