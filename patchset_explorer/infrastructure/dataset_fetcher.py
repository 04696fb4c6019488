from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx

from ..domain.errors import DatasetLoadError
from ..domain.interfaces import IDatasetFetcher

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Status reported when the request never produced a response.
NO_RESPONSE = 0


class HttpDatasetFetcher(IDatasetFetcher):
    """
    Concrete IDatasetFetcher that downloads dataset files over HTTP.

    The constructor receives an httpx.AsyncClient (injected) rather than
    creating one internally, so the caller owns the client lifecycle and
    tests can pass a client built on httpx.MockTransport.

    There is no retry: a dataset that cannot be fetched fails the session.
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._base_url = base_url.rstrip("/")
        self._client   = client
        self._timeout  = timeout

    def url_for(self, logical_name: str) -> str:
        return f"{self._base_url}/{logical_name.lstrip('/')}"

    async def fetch(self, logical_name: str) -> bytes:
        url = self.url_for(logical_name)
        try:
            response = await self._client.get(url, timeout=self._timeout)
        except httpx.RequestError as exc:
            log.warning("Request for %s failed: %s", url, exc)
            raise DatasetLoadError(logical_name, NO_RESPONSE) from exc

        if not response.is_success:
            raise DatasetLoadError(logical_name, response.status_code)

        log.debug("Fetched %s (%d bytes)", url, len(response.content))
        return response.content


class LocalDatasetFetcher(IDatasetFetcher):
    """
    IDatasetFetcher over a local directory. Filesystem errors are reported
    with the HTTP status they correspond to.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    async def fetch(self, logical_name: str) -> bytes:
        path = self._root / logical_name
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise DatasetLoadError(logical_name, 404) from exc
        except PermissionError as exc:
            raise DatasetLoadError(logical_name, 403) from exc
        except OSError as exc:
            log.warning("Reading %s failed: %s", path, exc)
            raise DatasetLoadError(logical_name, 500) from exc

        log.debug("Read %s (%d bytes)", path, len(data))
        return data
