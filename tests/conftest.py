"""Configure test paths and shared fixtures."""
import sys
from collections import Counter
from pathlib import Path

import httpx
import orjson
import pytest

# Add src/ to path so tests can import the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from archive_mirror.client import ArchiveClient  # noqa: E402
from archive_mirror.config import ServerEntry  # noqa: E402
from archive_mirror.models import Catalog, Channel, PostSummary  # noqa: E402

TEST_SERVER = ServerEntry(
    id="test",
    name="Test Archive",
    owner="org",
    repo="repo",
    branch="main",
    raw_base="https://archive.test",
)
BASE_PATH = "/org/repo/main/"


class FakeArchive:
    """
    In-memory remote source served through ``httpx.MockTransport``.

    Routes are paths relative to the source's base URL. A route maps to a
    JSON-able value, raw bytes, or an ``httpx.Response`` (for error codes).
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = Counter()

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith(BASE_PATH):
            path = path[len(BASE_PATH):]
        self.requests[path] += 1
        if path not in self.routes:
            return httpx.Response(404, content=b"Not Found")
        value = self.routes[path]
        if callable(value):
            value = value()
        if isinstance(value, httpx.Response):
            return value
        if isinstance(value, bytes):
            return httpx.Response(200, content=value)
        return httpx.Response(200, content=orjson.dumps(value))

    def client(self) -> ArchiveClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return ArchiveClient(TEST_SERVER, http=http)


def make_post(
    post_id,
    name=None,
    code=None,
    tags=(),
    channel_path="channel-a",
    archived_at=0,
    updated_at=None,
):
    return PostSummary(
        id=post_id,
        name=name if name is not None else f"Post {post_id}",
        channel_name=channel_path.title(),
        channel_code=channel_path[:2].upper(),
        channel_category="Test",
        channel_path=channel_path,
        entry_path=f"{post_id}",
        code=code if code is not None else post_id.upper(),
        tags=tuple(tags),
        archived_at=archived_at,
        updated_at=updated_at if updated_at is not None else archived_at,
    )


def make_catalog(posts, channel_paths=("channel-a", "channel-b")):
    counts = Counter(p.channel_path for p in posts)
    channels = tuple(
        Channel(id=path, name=path.title(), code=path[:2].upper(), category="Test",
                path=path, entry_count=counts.get(path, 0))
        for path in channel_paths
    )
    return Catalog(posts=tuple(posts), channels=channels, styles={})


@pytest.fixture
def archive_routes():
    """A small two-channel archive."""
    return {
        "config.json": {
            "archiveChannels": [
                {"id": "c1", "name": "Item Sorters", "code": "IS", "category": "Storage",
                 "path": "item-sorters", "description": "Sorting",
                 "availableTags": ["Compact", "Tileable"]},
                {"id": "c2", "name": "Furnaces", "code": "FA", "category": "Smelting",
                 "path": "/furnaces", "availableTags": []},
            ],
            "postStyle": {"description": {"headerText": "About"}},
        },
        "item-sorters/data.json": {
            "entries": [
                {"id": "p1", "name": "Fast Sorter", "code": "IS001", "archivedAt": 1000,
                 "updatedAt": 5000, "path": "is001", "tags": ["Compact", "Compact", "Tileable"]},
                {"id": "p2", "name": "Slow Sorter", "code": "IS002", "archivedAt": 2000,
                 "path": "is002", "tags": []},
            ]
        },
        "furnaces/data.json": {
            "entries": [
                {"id": "p3", "name": "Super Smelter", "code": "FA001", "archivedAt": 3000,
                 "path": "/fa001", "tags": ["Fast"]},
            ]
        },
    }


@pytest.fixture
def fake_archive(archive_routes):
    return FakeArchive(archive_routes)
