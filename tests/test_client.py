"""Tests for the HTTP transport."""

import asyncio

import httpx
import pytest

from archive_mirror import config
from archive_mirror.client import ArchiveClient
from archive_mirror.errors import SourceError

from conftest import TEST_SERVER, FakeArchive


def _client_raising(exc_type):
    def handler(request):
        raise exc_type("boom", request=request)

    return ArchiveClient(TEST_SERVER, http=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestFetchJson:
    def test_build_url(self):
        client = ArchiveClient(TEST_SERVER)
        assert client.build_url("/channel", "data.json") == \
            "https://archive.test/org/repo/main/channel/data.json"

    def test_decodes_json(self):
        archive = FakeArchive({"config.json": {"archiveChannels": []}})

        async def scenario():
            async with archive.client() as client:
                return await client.fetch_json("config.json")

        assert asyncio.run(scenario()) == {"archiveChannels": []}

    def test_timeout(self):
        async def scenario():
            async with _client_raising(httpx.ConnectTimeout) as client:
                await client.fetch_json("config.json")

        with pytest.raises(SourceError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.kind == "timeout"
        assert exc_info.value.user_message == "Connection timeout"

    def test_network_error(self):
        async def scenario():
            async with _client_raising(httpx.ConnectError) as client:
                await client.fetch_json("config.json")

        with pytest.raises(SourceError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.kind == "network"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestDownload:
    def test_size_cap(self, monkeypatch):
        monkeypatch.setattr(config, "MAX_DOWNLOAD_BYTES", 10)
        archive = FakeArchive({"big.bin": b"x" * 100})

        async def scenario():
            async with archive.client() as client:
                await client.download(client.build_url("big.bin"))

        with pytest.raises(SourceError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.kind == "too_large"

    def test_injected_http_client_left_open(self):
        archive = FakeArchive({"a.bin": b"abc"})

        async def scenario():
            http = httpx.AsyncClient(transport=httpx.MockTransport(archive.handler))
            async with ArchiveClient(TEST_SERVER, http=http) as client:
                data = await client.download(client.build_url("a.bin"))
            closed = http.is_closed
            await http.aclose()
            return data, closed

        data, closed = asyncio.run(scenario())
        assert data == b"abc"
        assert closed is False
