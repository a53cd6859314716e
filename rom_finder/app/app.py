"""Application wiring for the ROM name finder."""

from __future__ import annotations

import argparse
import dataclasses
import sys
from typing import Iterable, List, Optional, Sequence, TextIO

from rom_finder.config import FinderSettings
from rom_finder.core.query_builder import DEFAULT_COLUMN
from rom_finder.core.sanitize import SEARCH_COLUMNS, sanitize_game_name, sanitize_rom
from rom_finder.core.terms import TermNormalizer
from rom_finder.utils.logging_config import configure_logging
from rom_finder.utils.observability import get_logger
from rom_finder.utils.telemetry import StructuredTelemetry, TelemetryLogger

from rom_finder.app.data.channel import WorkerChannel
from rom_finder.app.data.datasets import DatasetSource, DirectoryDatasetSource, HttpDatasetSource
from rom_finder.app.data.repository import GameDatasetRepository
from rom_finder.app.services.search_service import GameSearchService
from rom_finder.app.services.session import SearchOutcome, SearchSession


def build_dataset_source(settings: FinderSettings) -> DatasetSource:
    """HTTP when a base URL is configured, otherwise the local dataset directory."""

    if settings.dataset_base_url:
        return HttpDatasetSource(
            settings.dataset_base_url,
            settings.allowed_datasets,
            timeout=settings.fetch_timeout,
        )
    return DirectoryDatasetSource(settings.dataset_dir, settings.allowed_datasets)


class RomFinderApp:
    """High-level facade bundling settings, services and the search session."""

    def __init__(
        self,
        settings: Optional[FinderSettings] = None,
        *,
        source: Optional[DatasetSource] = None,
        search_service: Optional[GameSearchService] = None,
    ) -> None:
        self.settings = settings or FinderSettings.from_env()
        configure_logging(self.settings.log_level)
        self._logger = get_logger(__name__).bind(component="app_facade")

        self.source = source or build_dataset_source(self.settings)
        if search_service is None:
            telemetry = StructuredTelemetry(listeners=[TelemetryLogger()])
            repository = GameDatasetRepository(
                WorkerChannel(request_timeout=self.settings.request_timeout)
            )
            search_service = GameSearchService(
                source=self.source,
                repository=repository,
                cache_ttl=self.settings.cache_ttl,
                cache_max_entries=self.settings.cache_max_entries,
                max_batch_chars=self.settings.max_batch_chars,
                telemetry=telemetry,
            )
        self.search_service = search_service
        self.session = SearchSession(
            self.search_service,
            normalizer=TermNormalizer(self.settings.term_cache_size),
            min_term_length=self.settings.min_term_length,
        )

        self._logger.info(
            "Application dependencies wired",
            context={
                "source": type(self.source).__name__,
                "datasets": list(self.source.allowed),
                "request_timeout": self.settings.request_timeout,
            },
        )

    def search(
        self,
        names: Iterable[str],
        dataset_id: Optional[str],
        *,
        include_clones: bool = True,
        column: str = DEFAULT_COLUMN,
    ) -> SearchOutcome:
        return self.session.search("\n".join(names), dataset_id, include_clones, column)

    def close(self) -> None:
        self.session.close()
        self.source.close()

    def __enter__(self) -> "RomFinderApp":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rom-finder",
        description="Look up ROM short names for arcade game titles.",
    )
    parser.add_argument("names", nargs="*", help="Game names; reads stdin lines when omitted.")
    parser.add_argument("-d", "--dataset", help="ROMset dataset id to search.")
    parser.add_argument(
        "--no-clones",
        dest="include_clones",
        action="store_false",
        help="Only return parent entries.",
    )
    parser.add_argument(
        "--column",
        default=DEFAULT_COLUMN,
        choices=sorted(SEARCH_COLUMNS),
        help="Column to match against (default: %(default)s).",
    )
    parser.add_argument(
        "--plain-names",
        action="store_true",
        help="Drop parenthesised region/version notes from printed names.",
    )
    parser.add_argument("--log-level", help="Override ROMFINDER_LOG_LEVEL.")
    return parser


def format_outcome(outcome: SearchOutcome, *, plain_names: bool = False) -> List[str]:
    """Render results as ``rom<TAB>name[<TAB>cloneOf]`` lines.

    ROM names are reduced to their valid characters so a malformed dataset
    row cannot break the column layout.
    """

    def display(name: Optional[str]) -> str:
        if not name:
            return ""
        return sanitize_game_name(name) if plain_names else name

    lines: List[str] = []
    for game in outcome.results or []:
        fields = [sanitize_rom(game.rom), display(game.name)]
        if game.clone_resolved:
            fields.append(display(game.clone_of))
        lines.append("\t".join(fields))
    return lines


def main(argv: Optional[Sequence[str]] = None, *, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout) -> int:
    args = _build_parser().parse_args(argv)
    settings = FinderSettings.from_env()
    if args.log_level:
        settings = dataclasses.replace(settings, log_level=args.log_level)

    names = list(args.names) or [line.rstrip("\n") for line in stdin]
    with RomFinderApp(settings) as app:
        outcome = app.search(
            names,
            args.dataset,
            include_clones=args.include_clones,
            column=args.column,
        )

    if not outcome.ok:
        print(outcome.error, file=sys.stderr)
        return 1
    for line in format_outcome(outcome, plain_names=args.plain_names):
        print(line, file=stdout)
    return 0


__all__ = ["RomFinderApp", "build_dataset_source", "format_outcome", "main"]
