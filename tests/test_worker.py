"""Tests for the background dataset worker."""

from __future__ import annotations

import queue

import pytest

from rom_finder.app.data.worker import DatasetWorker, QueryResult, WorkerRequest, WorkerResponse


@pytest.fixture
def responses() -> "queue.Queue[WorkerResponse]":
    return queue.Queue()


@pytest.fixture
def worker(responses):
    worker = DatasetWorker(responses.put)
    yield worker
    worker.terminate()


def _next(responses: "queue.Queue[WorkerResponse]") -> WorkerResponse:
    return responses.get(timeout=5)


def test_open_then_exec_returns_rows(worker, responses, arcade_dataset) -> None:
    worker.post_message(WorkerRequest(1, "open", buffer=arcade_dataset))
    opened = _next(responses)
    assert opened.id == 1 and opened.success

    worker.post_message(
        WorkerRequest(2, "exec", sql="SELECT rom FROM games WHERE docid = ?", params=[4])
    )
    result = _next(responses)

    assert result.success
    assert isinstance(result.data, QueryResult)
    assert result.data.columns == ("rom",)
    assert result.data.values == [("galaga",)]


def test_exec_before_open_fails(worker, responses) -> None:
    worker.post_message(WorkerRequest(7, "exec", sql="SELECT 1"))
    response = _next(responses)

    assert response.id == 7
    assert not response.success
    assert "not opened" in response.error


def test_open_without_buffer_fails(worker, responses) -> None:
    worker.post_message(WorkerRequest(1, "open"))

    assert _next(responses).error == "No database buffer provided"


def test_unknown_action_fails(worker, responses) -> None:
    worker.post_message(WorkerRequest(3, "drop"))

    response = _next(responses)
    assert not response.success
    assert response.error == "Unknown action: drop"


def test_sql_errors_are_reported_not_raised(worker, responses, arcade_dataset) -> None:
    worker.post_message(WorkerRequest(1, "open", buffer=arcade_dataset))
    _next(responses)
    worker.post_message(WorkerRequest(2, "exec", sql="SELECT nope FROM games"))

    response = _next(responses)
    assert not response.success
    assert "nope" in response.error


def test_terminated_worker_refuses_messages(worker) -> None:
    worker.terminate()

    assert not worker.alive
    with pytest.raises(RuntimeError):
        worker.post_message(WorkerRequest(1, "exec", sql="SELECT 1"))


def test_unexpected_errors_do_not_stop_the_worker(worker, responses, arcade_dataset) -> None:
    worker.post_message(WorkerRequest(1, "open", buffer=arcade_dataset))
    _next(responses)

    worker.post_message(WorkerRequest(2, "exec", sql=123))  # type: ignore[arg-type]
    failed = _next(responses)
    worker.post_message(WorkerRequest(3, "exec", sql="SELECT rom FROM games WHERE docid = 7"))
    recovered = _next(responses)

    assert failed.id == 2 and not failed.success
    assert "str" in failed.error
    assert worker.alive
    assert recovered.success
    assert recovered.data.values == [("dkong",)]


def test_failed_delivery_does_not_stop_the_worker(arcade_dataset) -> None:
    delivered: "queue.Queue[WorkerResponse]" = queue.Queue()
    calls = []

    def flaky(response: WorkerResponse) -> None:
        calls.append(response.id)
        if len(calls) == 1:
            raise KeyError("handler bug")
        delivered.put(response)

    worker = DatasetWorker(flaky)
    try:
        worker.post_message(WorkerRequest(1, "open", buffer=arcade_dataset))
        worker.post_message(WorkerRequest(2, "exec", sql="SELECT 1"))

        response = delivered.get(timeout=5)
        assert response.id == 2 and response.success
        assert worker.alive
    finally:
        worker.terminate()
