"""
Async HTTP transport shared by the index loader and the attachment saver.

One :class:`ArchiveClient` talks to one remote source. It owns (or borrows)
an ``httpx.AsyncClient``, limits concurrent requests with a semaphore, and
turns every transport failure into a :class:`~archive_mirror.errors.SourceError`.
Failures are not retried here; retry policy belongs to the caller.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import httpx
import orjson

from . import config
from .config import ServerEntry
from .errors import SourceError
from .utils import join_url

logger = logging.getLogger(__name__)

# Called with (bytes_just_received, total_bytes_or_None)
ProgressCallback = Callable[[int, Optional[int]], None]


class ArchiveClient:
    """
    HTTP access to one remote archive source.

    Usage:
        async with ArchiveClient(get_server("st2")) as client:
            config = await client.fetch_json("config.json")

    Pass ``http`` to reuse an existing ``httpx.AsyncClient`` (for example one
    built on ``httpx.MockTransport`` in tests); it is then left open on exit.
    """

    def __init__(
        self,
        server: Optional[ServerEntry] = None,
        http: Optional[httpx.AsyncClient] = None,
        max_concurrent: int = config.MAX_CONCURRENT_REQUESTS,
    ):
        self.server = server or config.default_server()
        self._http = http
        self._own_http = http is None
        self.semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> "ArchiveClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=config.INDEX_TIMEOUT,
                follow_redirects=True,
                headers={"User-Agent": config.USER_AGENT},
            )
        return self._http

    async def aclose(self) -> None:
        if self._own_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    def build_url(self, *parts: Optional[str]) -> str:
        """Absolute URL for a path relative to the source's base URL."""
        return join_url(self.server.base_url, *parts)

    async def fetch_json(self, path: str) -> Any:
        """
        GET a JSON document below the base URL and decode it.

        Raises:
            SourceError: on timeouts, connection failures, non-2xx responses
                         and undecodable bodies
        """
        url = self.build_url(path)
        logger.debug("Fetching %s", url)
        try:
            async with self.semaphore:
                response = await self.http.get(
                    url,
                    headers={"Accept": "application/json"},
                    timeout=config.INDEX_TIMEOUT,
                )
        except httpx.TimeoutException as e:
            raise SourceError(f"Timed out fetching {url}", url=url, kind="timeout") from e
        except httpx.RequestError as e:
            raise SourceError(f"Request error for {url}: {e}", url=url, kind="network") from e

        if not response.is_success:
            raise SourceError(
                f"HTTP error: {response.status_code} for {url}",
                url=url,
                status_code=response.status_code,
                kind="http",
            )

        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise SourceError(f"Malformed JSON from {url}: {e}", url=url, kind="invalid") from e

    async def download(self, url: str, progress: Optional[ProgressCallback] = None) -> bytes:
        """
        Download a binary resource into memory, following redirects.

        Args:
            url: Absolute URL (spaces are percent-encoded)
            progress: Optional callback fed after every received chunk

        Raises:
            SourceError: on timeouts, connection failures, non-2xx responses,
                         or bodies larger than ``MAX_DOWNLOAD_BYTES``
        """
        url = url.replace(" ", "%20")
        logger.info("Downloading %s", url)
        buffer = bytearray()
        try:
            async with self.semaphore:
                async with self.http.stream(
                    "GET", url, timeout=config.DOWNLOAD_TIMEOUT, follow_redirects=True
                ) as response:
                    if not response.is_success:
                        raise SourceError(
                            f"HTTP error: {response.status_code} for {url}",
                            url=url,
                            status_code=response.status_code,
                            kind="http",
                        )
                    total = _content_length(response)
                    async for chunk in response.aiter_bytes(config.DOWNLOAD_CHUNK_SIZE):
                        buffer.extend(chunk)
                        if len(buffer) > config.MAX_DOWNLOAD_BYTES:
                            raise SourceError(
                                f"Download of {url} exceeds {config.MAX_DOWNLOAD_BYTES} bytes",
                                url=url,
                                kind="too_large",
                            )
                        if progress is not None:
                            progress(len(chunk), total)
        except httpx.TimeoutException as e:
            raise SourceError(f"Timed out downloading {url}", url=url, kind="timeout") from e
        except httpx.RequestError as e:
            raise SourceError(f"Request error for {url}: {e}", url=url, kind="network") from e

        logger.debug("Downloaded %d bytes from %s", len(buffer), url)
        return bytes(buffer)


def _content_length(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
