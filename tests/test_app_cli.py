import io
import logging

import pytest

from conftest import ARCADE_GAMES, build_dataset
from rom_finder.app.app import RomFinderApp, build_dataset_source, format_outcome, main
from rom_finder.app.data.datasets import DirectoryDatasetSource, HttpDatasetSource
from rom_finder.app.services.session import SearchOutcome
from rom_finder.config import FinderSettings
from rom_finder.core.records import GameResult


@pytest.fixture
def dataset_dir(tmp_path, monkeypatch):
    (tmp_path / "arcade.db").write_bytes(build_dataset(ARCADE_GAMES))
    monkeypatch.setenv("ROMFINDER_DATASET_DIR", str(tmp_path))
    monkeypatch.setenv("ROMFINDER_DATASETS", "arcade")
    monkeypatch.delenv("ROMFINDER_DATASET_URL", raising=False)
    return tmp_path


def test_source_selection_follows_settings(tmp_path):
    http = build_dataset_source(FinderSettings(allowed_datasets=("a",), dataset_base_url="https://x.test"))
    local = build_dataset_source(FinderSettings(allowed_datasets=("a",), dataset_dir=str(tmp_path)))
    try:
        assert isinstance(http, HttpDatasetSource)
        assert isinstance(local, DirectoryDatasetSource)
    finally:
        http.close()


def test_app_search_round_trip(dataset_dir):
    settings = FinderSettings(allowed_datasets=("arcade",), dataset_dir=str(dataset_dir))

    with RomFinderApp(settings) as app:
        outcome = app.search(["Galaga"], "arcade", include_clones=True)

    assert outcome.ok
    assert [game.rom for game in outcome.results] == ["galaga", "galagao"]
    assert not app.search_service.is_loaded()


def test_cli_prints_tab_separated_results(dataset_dir):
    stdout = io.StringIO()

    exit_code = main(["Galaga", "Donkey Kong", "--dataset", "arcade"], stdout=stdout)

    assert exit_code == 0
    assert stdout.getvalue().splitlines() == [
        "galaga\tGalaga\t",
        "galagao\tGalaga (Namco rev. B)\tGalaga",
        "dkong\tDonkey Kong\t",
    ]


def test_cli_reads_names_from_stdin(dataset_dir):
    stdout = io.StringIO()

    exit_code = main(
        ["--dataset", "arcade", "--no-clones"],
        stdin=io.StringIO("Ms. Pac-Man\n"),
        stdout=stdout,
    )

    assert exit_code == 0
    assert stdout.getvalue() == "mspacman\tMs. Pac-Man\n"


def test_cli_reports_errors_on_stderr(dataset_dir, capsys):
    exit_code = main(["Galaga", "--dataset", "neogeo"], stdout=io.StringIO())

    assert exit_code == 1
    assert capsys.readouterr().err.strip().splitlines()[-1] == "The selected ROMset is not available"


def test_plain_names_drop_version_notes(dataset_dir):
    stdout = io.StringIO()

    exit_code = main(["Galaga", "--dataset", "arcade", "--plain-names"], stdout=stdout)

    assert exit_code == 0
    assert stdout.getvalue().splitlines() == [
        "galaga\tGalaga\t",
        "galagao\tGalaga\tGalaga",
    ]


def test_printed_rom_names_cannot_break_columns():
    outcome = SearchOutcome(results=[GameResult("pac\tman\n", "Pac-Man"), GameResult("dkong", "Donkey Kong")])

    assert format_outcome(outcome) == ["pacman\tPac-Man", "dkong\tDonkey Kong"]


def test_log_level_flag_overrides_environment(dataset_dir, monkeypatch):
    logger = logging.getLogger("rom_finder")
    previous = logger.level
    monkeypatch.setenv("ROMFINDER_LOG_LEVEL", "WARNING")
    try:
        main(["Galaga", "--dataset", "arcade", "--log-level", "DEBUG"], stdout=io.StringIO())

        assert logger.level == logging.DEBUG
    finally:
        logger.setLevel(previous)
