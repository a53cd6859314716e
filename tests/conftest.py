import sqlite3
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rom_finder.app.data.channel import WorkerChannel
from rom_finder.app.data.datasets import DatasetSource
from rom_finder.app.data.repository import GameDatasetRepository
from rom_finder.app.data.worker import DatasetWorker
from rom_finder.app.services.search_service import GameSearchService
from rom_finder.core.errors import DatasetUnavailableError
from rom_finder.core.terms import normalize_term


@dataclass
class GameRow:
    docid: int
    rom: str
    name: str
    clone_of: Optional[int] = None
    term: Optional[str] = None


ARCADE_GAMES: List[GameRow] = [
    GameRow(1, "pacman", "Pac-Man"),
    GameRow(2, "pacmanf", "Pac-Man (Fast)", clone_of=1),
    GameRow(3, "mspacman", "Ms. Pac-Man"),
    GameRow(4, "galaga", "Galaga"),
    GameRow(5, "galagao", "Galaga (Namco rev. B)", clone_of=4),
    GameRow(6, "puckmod", "Puck Man (modified)", clone_of=1),
    GameRow(7, "dkong", "Donkey Kong"),
]


def build_dataset(rows: Iterable[GameRow]) -> bytes:
    """Serialise ``rows`` into an FTS4 ``games`` database image."""

    connection = sqlite3.connect(":memory:")
    try:
        connection.execute(
            "CREATE VIRTUAL TABLE games USING fts4(rom TEXT, name TEXT, term TEXT, cloneOf INTEGER)"
        )
        connection.executemany(
            "INSERT INTO games (docid, rom, name, term, cloneOf) VALUES (?, ?, ?, ?, ?)",
            [
                (
                    row.docid,
                    row.rom,
                    row.name,
                    row.term if row.term is not None else normalize_term(row.name),
                    row.clone_of,
                )
                for row in rows
            ],
        )
        connection.commit()
        return bytes(connection.serialize())
    finally:
        connection.close()


class MemoryDatasetSource(DatasetSource):
    """Dataset source serving prebuilt images and counting fetches."""

    def __init__(self, datasets: Dict[str, bytes], allowed: Optional[Iterable[str]] = None) -> None:
        super().__init__(allowed if allowed is not None else datasets.keys())
        self.datasets = dict(datasets)
        self.fetches: List[str] = []

    def _fetch(self, dataset_id: str) -> bytes:
        self.fetches.append(dataset_id)
        try:
            return self.datasets[dataset_id]
        except KeyError:
            raise DatasetUnavailableError(f"Failed to fetch database: {dataset_id} missing") from None


class CountingRepository(GameDatasetRepository):
    """Repository that records every query sent to the worker."""

    def __init__(self, channel: Optional[WorkerChannel] = None) -> None:
        super().__init__(channel)
        self.executed: List[str] = []

    def execute(self, query):
        self.executed.append(query.sql)
        return super().execute(query)


class RecordingWorkerFactory:
    def __init__(self) -> None:
        self.workers: List[DatasetWorker] = []

    def __call__(self, post_message):
        worker = DatasetWorker(post_message)
        self.workers.append(worker)
        return worker


@pytest.fixture
def arcade_dataset() -> bytes:
    return build_dataset(ARCADE_GAMES)


@pytest.fixture
def worker_factory() -> RecordingWorkerFactory:
    return RecordingWorkerFactory()


@pytest.fixture
def make_service(worker_factory):
    """Build services over in-memory datasets; workers are terminated afterwards."""

    created: List[GameSearchService] = []

    def _make(datasets: Dict[str, bytes], **kwargs) -> GameSearchService:
        source = kwargs.pop("source", None) or MemoryDatasetSource(datasets)
        repository = CountingRepository(WorkerChannel(worker_factory, request_timeout=5.0))
        service = GameSearchService(source=source, repository=repository, **kwargs)
        created.append(service)
        return service

    yield _make

    for service in created:
        service.terminate()


@pytest.fixture
def arcade_service(make_service, arcade_dataset) -> GameSearchService:
    service = make_service({"arcade": arcade_dataset})
    service.load_database("arcade")
    return service
