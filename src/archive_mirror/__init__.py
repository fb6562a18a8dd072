"""
archive-mirror - client for file-based design archives

This package mirrors a remote archive (a tree of JSON manifests and binary
attachments served over HTTP) into a searchable in-memory catalog, and saves
selected attachments to disk, extracting world archives safely.

Main components:
- IndexCache: single-flight loader/cache of the remote catalog
- search_posts: filter, sort and paginate a catalog
- render_records: turn a post's records document into text sections
- AttachmentSaver: download attachments and extract world archives

Usage:
    import asyncio
    from archive_mirror import ArchiveClient, IndexCache, search_posts

    async def main():
        async with ArchiveClient() as client:
            catalog = await IndexCache(client).ensure()
            print(search_posts(catalog, query="sorter").items)

    asyncio.run(main())
"""

from .client import ArchiveClient
from .config import ServerEntry, default_server, get_server
from .errors import (
    ArchiveError,
    AttachmentError,
    ExtractionSafetyError,
    SourceError,
    StorageError,
)
from .index import IndexCache
from .models import (
    Attachment,
    Catalog,
    Channel,
    PostDetail,
    PostSummary,
    RecordSection,
    SaveResult,
    SearchResult,
)
from .records import render_records
from .saver import AttachmentSaver
from .search import search_posts
from .styles import StyleInfo, resolve_style

__all__ = [
    'ArchiveClient',
    'IndexCache',
    'AttachmentSaver',
    'ServerEntry',
    'default_server',
    'get_server',
    'search_posts',
    'render_records',
    'resolve_style',
    'StyleInfo',
    'Catalog',
    'Channel',
    'PostSummary',
    'PostDetail',
    'Attachment',
    'RecordSection',
    'SearchResult',
    'SaveResult',
    'ArchiveError',
    'SourceError',
    'AttachmentError',
    'ExtractionSafetyError',
    'StorageError',
]

__version__ = '1.0.0'
