"""Runtime settings for the ROM name finder.

Settings come from constructor arguments or from ``ROMFINDER_*``
environment variables via :meth:`FinderSettings.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Tuple, TypeVar

from .utils.observability import get_logger

_logger = get_logger(__name__).bind(component="config")

T = TypeVar("T")

ENV_PREFIX = "ROMFINDER_"


def _parse_csv_list(raw_value: Optional[str]) -> Tuple[str, ...]:
    """Parse comma-separated values into a tuple of non-empty items."""
    if not raw_value:
        return ()
    return tuple(item.strip() for item in raw_value.split(",") if item.strip())


def _read(
    env: Mapping[str, str],
    name: str,
    parse: Callable[[str], T],
    default: T,
    minimum: Optional[float] = None,
) -> T:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        value = parse(raw.strip())
        if minimum is not None and not value >= minimum:  # type: ignore[operator]
            raise ValueError(f"below minimum {minimum}")
        return value
    except ValueError:
        _logger.warning(
            "Ignoring invalid setting",
            context={
                "variable": ENV_PREFIX + name,
                "value": raw,
                "default": default,
                "minimum": minimum,
            },
        )
        return default


@dataclass(frozen=True)
class FinderSettings:
    """Configuration shared by the dataset layer and the search services."""

    allowed_datasets: Tuple[str, ...] = ()
    dataset_base_url: Optional[str] = None
    dataset_dir: str = "db"
    cache_ttl: float = 300.0
    cache_max_entries: int = 100
    term_cache_size: int = 100
    request_timeout: Optional[float] = 30.0
    fetch_timeout: float = 10.0
    max_batch_chars: int = 1000
    min_term_length: int = 3
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "FinderSettings":
        env = os.environ if env is None else env
        defaults = cls()

        timeout = _read(env, "REQUEST_TIMEOUT", float, defaults.request_timeout, minimum=0)
        settings = cls(
            allowed_datasets=_parse_csv_list(env.get(ENV_PREFIX + "DATASETS")),
            dataset_base_url=env.get(ENV_PREFIX + "DATASET_URL") or None,
            dataset_dir=env.get(ENV_PREFIX + "DATASET_DIR") or defaults.dataset_dir,
            cache_ttl=_read(env, "CACHE_TTL", float, defaults.cache_ttl, minimum=0),
            cache_max_entries=_read(env, "CACHE_SIZE", int, defaults.cache_max_entries, minimum=0),
            term_cache_size=_read(env, "TERM_CACHE_SIZE", int, defaults.term_cache_size, minimum=0),
            request_timeout=timeout if timeout else None,
            fetch_timeout=_read(env, "FETCH_TIMEOUT", float, defaults.fetch_timeout, minimum=0),
            max_batch_chars=_read(env, "MAX_BATCH_CHARS", int, defaults.max_batch_chars, minimum=1),
            min_term_length=_read(env, "MIN_TERM_LENGTH", int, defaults.min_term_length, minimum=0),
            log_level=env.get(ENV_PREFIX + "LOG_LEVEL") or defaults.log_level,
        )
        _logger.debug(
            "Settings loaded from environment",
            context={
                "datasets": list(settings.allowed_datasets),
                "dataset_base_url": settings.dataset_base_url,
                "dataset_dir": settings.dataset_dir,
            },
        )
        return settings


__all__ = ["ENV_PREFIX", "FinderSettings"]
