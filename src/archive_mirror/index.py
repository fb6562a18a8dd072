"""
Remote index loader and catalog cache.

The remote source is a tree of JSON manifests::

    config.json                          root config: channels + record styles
    <channel>/data.json                  channel manifest: entries
    <channel>/<entry>/data.json          entry detail: authors, images, ...

:class:`IndexCache` turns the root config and every channel manifest into
one immutable :class:`~archive_mirror.models.Catalog`. Loads are
single-flight and all-or-nothing: concurrent callers share one in-flight
load, a failure publishes nothing and leaves the cache empty, and a success
is kept until :meth:`IndexCache.invalidate`.

Entry details are fetched on every call and not cached.
"""

import asyncio
import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from . import config
from .client import ArchiveClient
from .errors import SourceError
from .models import (
    Attachment,
    Catalog,
    Channel,
    ImageInfo,
    PostDetail,
    PostSummary,
    ThreadReference,
)
from .records import render_records
from .utils import join_url, normalize_path

logger = logging.getLogger(__name__)


def _manifest_path(*parts: Optional[str]) -> str:
    return join_url("", *parts, config.MANIFEST_NAME).lstrip("/")


def _expect_dict(data: Any, what: str, url: Optional[str] = None) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise SourceError(f"{what} is not a JSON object", url=url, kind="invalid")
    return data


def _expect_list(data: Any, what: str, url: Optional[str] = None) -> List[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise SourceError(f"{what} is not a JSON array", url=url, kind="invalid")
    return data


def build_catalog(
    root_config: Dict[str, Any],
    manifests: List[Tuple[Dict[str, Any], Dict[str, Any]]],
) -> Catalog:
    """
    Merge channel manifests into a catalog.

    Args:
        root_config: Decoded ``config.json``
        manifests: (channel descriptor, decoded channel manifest) pairs in
                   config order

    Every channel's ``entry_count`` is the number of posts whose channel path
    matches it.
    """
    styles = root_config.get("postStyle")
    styles = styles if isinstance(styles, dict) else {}

    posts: List[PostSummary] = []
    bare_channels: List[Channel] = []
    for descriptor, manifest in manifests:
        channel = Channel.from_dict(descriptor)
        bare_channels.append(channel)
        for entry in _expect_list(manifest.get("entries"), f"entries of channel {channel.path!r}"):
            if not isinstance(entry, dict):
                raise SourceError(f"Malformed entry in channel {channel.path!r}", kind="invalid")
            posts.append(PostSummary.from_entry(channel, entry))

    counts = Counter(post.channel_path for post in posts)
    channels = [
        Channel(
            id=c.id,
            name=c.name,
            code=c.code,
            category=c.category,
            path=c.path,
            description=c.description,
            entry_count=counts.get(c.path, 0),
            available_tags=c.available_tags,
        )
        for c in bare_channels
    ]
    return Catalog(posts=tuple(posts), channels=tuple(channels), styles=styles)


async def load_catalog(client: ArchiveClient) -> Catalog:
    """
    Fetch the root config and every channel manifest, then build the catalog.

    Channel manifests are fetched concurrently and all of them are awaited
    before anything is built; the first failure (in config order) is raised.
    """
    root_config = _expect_dict(await client.fetch_json(config.CONFIG_PATH), "Root config")
    descriptors = _expect_list(root_config.get("archiveChannels"), "archiveChannels")
    for descriptor in descriptors:
        _expect_dict(descriptor, "Channel descriptor")

    if not descriptors:
        logger.info("Root config lists no channels, publishing an empty catalog")
        return build_catalog(root_config, [])

    logger.info("Fetching %d channel manifests", len(descriptors))
    results = await asyncio.gather(
        *[client.fetch_json(_manifest_path(d.get("path"))) for d in descriptors],
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result

    manifests = [
        (descriptor, _expect_dict(manifest, f"Manifest of channel {descriptor.get('path')!r}"))
        for descriptor, manifest in zip(descriptors, results)
    ]
    return build_catalog(root_config, manifests)


class IndexCache:
    """
    Single-flight cache of one source's catalog.

    Owned by the caller (one per active remote source). ``ensure`` may be
    awaited concurrently from any number of tasks on the same event loop.

    Usage:
        cache = IndexCache(client)
        catalog = await cache.ensure()
        ...
        cache.invalidate()   # e.g. when the view closes or the source changes
    """

    def __init__(self, client: ArchiveClient):
        self.client = client
        self._catalog: Optional[Catalog] = None
        self._inflight: Optional["asyncio.Future[Catalog]"] = None
        self._lock = asyncio.Lock()
        # Bumped by invalidate() so a load started earlier cannot publish
        self._generation = 0

    @property
    def catalog(self) -> Optional[Catalog]:
        """The published catalog, or None when nothing is loaded."""
        return self._catalog

    async def ensure(self) -> Catalog:
        """
        Return the catalog, loading it if needed.

        How it works:
            1. Under the lock, return the published catalog if there is one
            2. Otherwise join the in-flight load, starting one if none is
               running (tagged with the current generation)
            3. Await the shared load outside the lock, through
               ``asyncio.shield`` so one caller being cancelled does not
               cancel the load for everybody else

        Why a generation counter?
            ``invalidate`` may be called while a load is still running. The
            load remembers the generation it started in and only publishes
            if nothing bumped it since, so a stale catalog never reappears
            after an invalidation.

        Raises:
            SourceError: when the load fails; the next call retries from scratch
        """
        async with self._lock:
            if self._catalog is not None:
                logger.debug("Catalog cache hit for %s", self.client.server.id)
                return self._catalog
            if self._inflight is None:
                self._inflight = asyncio.ensure_future(self._load(self._generation))
            inflight = self._inflight
        return await asyncio.shield(inflight)

    def invalidate(self) -> None:
        """Drop the cached catalog; the next ``ensure`` refetches everything."""
        self._generation += 1
        self._catalog = None
        self._inflight = None

    async def _load(self, generation: int) -> Catalog:
        try:
            catalog = await load_catalog(self.client)
        except BaseException as e:
            if generation == self._generation:
                self._inflight = None
            logger.warning("Catalog load for %s failed: %s", self.client.server.id, e)
            raise
        if generation == self._generation:
            self._catalog = catalog
            self._inflight = None
            logger.info(
                "Catalog for %s published: %d posts in %d channels",
                self.client.server.id, len(catalog.posts), len(catalog.channels),
            )
        return catalog

    async def fetch_post_detail(self, summary: PostSummary) -> PostDetail:
        """
        Fetch and parse one entry's detail document.

        Record sections are rendered with the catalog's schema styles, so the
        catalog is ensured first.
        """
        catalog = await self.ensure()
        path = _manifest_path(summary.channel_path, summary.entry_path)
        data = _expect_dict(await self.client.fetch_json(path), f"Detail of post {summary.id!r}")
        return parse_post_detail(self.client, summary, data, catalog.styles)


def parse_post_detail(
    client: ArchiveClient,
    summary: PostSummary,
    data: Dict[str, Any],
    schema_styles: Optional[Dict[str, Any]] = None,
) -> PostDetail:
    """Turn a decoded entry detail document into a :class:`PostDetail`."""
    entry_base = (normalize_path(summary.channel_path), normalize_path(summary.entry_path))

    def resolve(path: Optional[str]) -> Optional[str]:
        if not path:
            return None
        return client.build_url(*entry_base, path)

    authors = []
    for author in _expect_list(data.get("authors"), "authors"):
        if not isinstance(author, dict):
            continue
        name = author.get("displayName") or author.get("username")
        if name:
            authors.append(str(name))

    images = []
    for image in _expect_list(data.get("images"), "images"):
        if not isinstance(image, dict):
            continue
        url = resolve(image.get("path"))
        if url:
            images.append(ImageInfo(
                url=url,
                description=image.get("description"),
                width=image.get("width"),
                height=image.get("height"),
            ))

    attachments = [
        Attachment.from_dict(item, resolve)
        for item in _expect_list(data.get("attachments"), "attachments")
        if isinstance(item, dict)
    ]

    thread = ThreadReference.from_dict(data["post"]) if isinstance(data.get("post"), dict) else None

    records = data.get("records")
    entry_styles = data.get("styles")
    sections = render_records(
        records if isinstance(records, dict) else None,
        schema_styles,
        entry_styles if isinstance(entry_styles, dict) else None,
    )

    archived_at = data.get("archivedAt")
    updated_at = data.get("updatedAt")
    return PostDetail(
        summary=summary,
        authors=tuple(authors),
        images=tuple(images),
        attachments=tuple(attachments),
        thread=thread,
        record_sections=tuple(sections),
        archived_at=archived_at if isinstance(archived_at, int) else summary.archived_at,
        updated_at=updated_at if isinstance(updated_at, int) else summary.updated_at,
    )
