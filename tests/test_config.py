import logging

from rom_finder.config import FinderSettings


def test_defaults_without_environment():
    settings = FinderSettings.from_env({})

    assert settings == FinderSettings()
    assert settings.cache_ttl == 300.0
    assert settings.cache_max_entries == 100
    assert settings.allowed_datasets == ()


def test_values_read_from_environment():
    settings = FinderSettings.from_env(
        {
            "ROMFINDER_DATASETS": "mame2003, fbneo,,mame2003-plus",
            "ROMFINDER_DATASET_URL": "https://roms.example.test/db",
            "ROMFINDER_CACHE_TTL": "60",
            "ROMFINDER_CACHE_SIZE": "10",
            "ROMFINDER_MAX_BATCH_CHARS": "500",
            "ROMFINDER_MIN_TERM_LENGTH": "2",
            "ROMFINDER_LOG_LEVEL": "DEBUG",
        }
    )

    assert settings.allowed_datasets == ("mame2003", "fbneo", "mame2003-plus")
    assert settings.dataset_base_url == "https://roms.example.test/db"
    assert settings.cache_ttl == 60.0
    assert settings.cache_max_entries == 10
    assert settings.max_batch_chars == 500
    assert settings.min_term_length == 2
    assert settings.log_level == "DEBUG"


def test_zero_request_timeout_disables_it():
    assert FinderSettings.from_env({"ROMFINDER_REQUEST_TIMEOUT": "0"}).request_timeout is None
    assert FinderSettings.from_env({"ROMFINDER_REQUEST_TIMEOUT": "2.5"}).request_timeout == 2.5


def test_invalid_values_fall_back_to_defaults(caplog):
    caplog.set_level(logging.WARNING, logger="rom_finder.config")

    settings = FinderSettings.from_env({"ROMFINDER_CACHE_SIZE": "lots"})

    assert settings.cache_max_entries == 100
    assert any("Ignoring invalid setting" in record.message for record in caplog.records)


def test_negative_values_fall_back_to_defaults(caplog):
    caplog.set_level(logging.WARNING, logger="rom_finder.config")

    settings = FinderSettings.from_env(
        {
            "ROMFINDER_REQUEST_TIMEOUT": "-1",
            "ROMFINDER_CACHE_TTL": "-300",
            "ROMFINDER_CACHE_SIZE": "-5",
            "ROMFINDER_MAX_BATCH_CHARS": "0",
            "ROMFINDER_FETCH_TIMEOUT": "nan",
        }
    )

    assert settings.request_timeout == 30.0
    assert settings.cache_ttl == 300.0
    assert settings.cache_max_entries == 100
    assert settings.max_batch_chars == 1000
    assert settings.fetch_timeout == 10.0
    warned = [record.message for record in caplog.records if "Ignoring invalid setting" in record.message]
    assert len(warned) == 5
    assert any("ROMFINDER_CACHE_TTL" in message for message in warned)


def test_zero_is_accepted_where_it_means_disabled():
    settings = FinderSettings.from_env({"ROMFINDER_CACHE_SIZE": "0", "ROMFINDER_CACHE_TTL": "0"})

    assert settings.cache_max_entries == 0
    assert settings.cache_ttl == 0.0
