"""Sources that deliver dataset files as raw bytes.

The dataset id is checked against the allow-list before any URL or path
is built from it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import httpx

from rom_finder.core.errors import DatasetRejectedError, DatasetUnavailableError, ERR_DB_FETCH
from rom_finder.core.sanitize import is_allowed_dataset
from rom_finder.utils.observability import get_logger

DATASET_SUFFIX = ".db"


class DatasetSource:
    """Base class holding the allow-list shared by all sources."""

    def __init__(self, allowed: Iterable[str]) -> None:
        self._allowed = tuple(dict.fromkeys(item for item in allowed if item))
        self._logger = get_logger(__name__).bind(component=type(self).__name__)

    @property
    def allowed(self) -> tuple[str, ...]:
        return self._allowed

    def is_allowed(self, dataset_id: str) -> bool:
        return is_allowed_dataset(dataset_id, self._allowed)

    def ensure_allowed(self, dataset_id: str) -> str:
        if not self.is_allowed(dataset_id):
            self._logger.warning("Rejected dataset id", context={"dataset_id": repr(dataset_id)[:64]})
            raise DatasetRejectedError(f"Dataset {dataset_id!r} is not in the allow-list")
        return dataset_id

    def fetch(self, dataset_id: str) -> bytes:
        self.ensure_allowed(dataset_id)
        return self._fetch(dataset_id)

    def _fetch(self, dataset_id: str) -> bytes:
        raise NotImplementedError

    def close(self) -> None:
        """Release resources held by the source."""


class HttpDatasetSource(DatasetSource):
    """Fetch ``<base_url>/<id>.db`` over HTTP."""

    def __init__(
        self,
        base_url: str,
        allowed: Iterable[str],
        *,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(allowed)
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout), follow_redirects=True)
        self._owns_client = client is None

    def _fetch(self, dataset_id: str) -> bytes:
        url = f"{self._base_url}/{dataset_id}{DATASET_SUFFIX}"
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            reason = exc.response.reason_phrase or str(exc.response.status_code)
            self._logger.error(
                "Dataset download failed",
                context={"dataset_id": dataset_id, "status": exc.response.status_code},
            )
            raise DatasetUnavailableError(
                f"{ERR_DB_FETCH}: {reason}", user_message=f"{ERR_DB_FETCH}: {reason}"
            ) from exc
        except httpx.HTTPError as exc:
            self._logger.error(
                "Dataset download failed",
                context={"dataset_id": dataset_id, "error": type(exc).__name__},
            )
            raise DatasetUnavailableError(f"{ERR_DB_FETCH}: {exc}") from exc

        self._logger.info(
            "Dataset downloaded",
            context={"dataset_id": dataset_id, "bytes": len(response.content)},
        )
        return response.content

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class DirectoryDatasetSource(DatasetSource):
    """Read ``<directory>/<id>.db`` from the local filesystem."""

    def __init__(self, directory: str | Path, allowed: Iterable[str]) -> None:
        super().__init__(allowed)
        self._directory = Path(directory).resolve()

    def _fetch(self, dataset_id: str) -> bytes:
        path = (self._directory / f"{dataset_id}{DATASET_SUFFIX}").resolve()
        if self._directory not in path.parents:
            raise DatasetRejectedError(f"Dataset {dataset_id!r} resolves outside the dataset directory")
        try:
            data = path.read_bytes()
        except OSError as exc:
            self._logger.error(
                "Dataset file unreadable",
                context={"dataset_id": dataset_id, "error": type(exc).__name__},
            )
            raise DatasetUnavailableError(f"{ERR_DB_FETCH}: {exc.strerror or exc}") from exc
        self._logger.info("Dataset read", context={"dataset_id": dataset_id, "bytes": len(data)})
        return data


__all__ = ["DATASET_SUFFIX", "DatasetSource", "DirectoryDatasetSource", "HttpDatasetSource"]
