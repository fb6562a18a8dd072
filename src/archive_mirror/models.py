"""
Data models for archive-mirror.

This module defines typed data structures for the mirrored archive: the
catalog built from the remote manifests, the lazily fetched post details,
and the results handed back to the UI layer.

Manifest JSON uses camelCase keys; each model's ``from_dict`` maps them onto
snake_case attributes and tolerates missing optional fields.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple


def _text(value: Any) -> Optional[str]:
    """Manifest string field, or None when absent."""
    if value is None:
        return None
    return str(value)


def _int(value: Any, default: int = 0) -> int:
    """Manifest integer field; booleans and junk fall back to ``default``."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _unique(items: Any) -> Tuple[str, ...]:
    """Ordered, repeat-free tuple of the non-empty strings in ``items``."""
    seen = []
    for item in items or ():
        if item is None:
            continue
        text = str(item)
        if text and text not in seen:
            seen.append(text)
    return tuple(seen)


@dataclass(frozen=True)
class Channel:
    """
    A named sub-collection of posts (one remote sub-tree).

    Attributes:
        id: Channel identifier from the root config
        name: Display name (e.g., "Item Sorters")
        code: Short code prefix shared by the channel's posts (e.g., "IS")
        category: Category label used to group channels
        path: Remote path of the channel directory, relative to the base URL
        description: Free-form channel description
        entry_count: Number of posts in the catalog belonging to this channel
        available_tags: Tags the channel allows on its posts
    """
    id: Optional[str]
    name: Optional[str]
    code: Optional[str]
    category: Optional[str]
    path: str
    description: Optional[str] = None
    entry_count: int = 0
    available_tags: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict, entry_count: int = 0) -> "Channel":
        """Build a channel from an ``archiveChannels`` item of the root config."""
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name")),
            code=_text(data.get("code")),
            category=_text(data.get("category")),
            path=_text(data.get("path")) or "",
            description=_text(data.get("description")),
            entry_count=entry_count,
            available_tags=_unique(data.get("availableTags")),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PostSummary:
    """
    Lightweight catalog record for one archived post.

    Timestamps are epoch milliseconds. ``updated_at`` equals ``archived_at``
    when the manifest does not carry a later update time.
    """
    id: Optional[str]
    name: Optional[str]
    channel_name: Optional[str]
    channel_code: Optional[str]
    channel_category: Optional[str]
    channel_path: str
    entry_path: str
    code: Optional[str]
    tags: Tuple[str, ...] = ()
    archived_at: int = 0
    updated_at: int = 0

    @classmethod
    def from_entry(cls, channel: Channel, entry: dict) -> "PostSummary":
        """Build a summary from one ``entries`` item of a channel manifest."""
        archived_at = _int(entry.get("archivedAt"))
        updated_at = _int(entry.get("updatedAt"))
        if updated_at <= 0:
            updated_at = archived_at
        return cls(
            id=_text(entry.get("id")),
            name=_text(entry.get("name")),
            channel_name=channel.name,
            channel_code=channel.code,
            channel_category=channel.category,
            channel_path=channel.path,
            entry_path=_text(entry.get("path")) or "",
            code=_text(entry.get("code")),
            tags=_unique(entry.get("tags")),
            archived_at=archived_at,
            updated_at=updated_at,
        )

    @property
    def title(self) -> str:
        return self.name or ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ImageInfo:
    """An image of a post, with its resolved URL."""
    url: str
    description: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class LitematicInfo:
    """Schematic metadata published with a ``.litematic`` attachment."""
    version: Optional[str] = None
    size: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class WdlInfo:
    """World-download metadata; its presence marks a world archive."""
    version: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class YoutubeInfo:
    """Video metadata for attachments that link to a video."""
    title: Optional[str] = None
    author_name: Optional[str] = None
    author_url: Optional[str] = None


@dataclass(frozen=True)
class Attachment:
    """
    A file attached to a post.

    Attributes:
        name: File name as published (e.g., "sorter.litematic", "My World.zip")
        download_url: Resolved download URL, or the external URL when the
                      attachment cannot be downloaded directly
        content_type: MIME type published by the archive
        can_download: False for external links (videos, off-site files)
        size_text: Human-readable size (e.g., "13x7x21")
        description: Optional caption
        litematic: Schematic metadata, when present
        wdl: World-download metadata, when present
        youtube: Video metadata, when present

    Example:
        attachment = Attachment(
            name="sorter.litematic",
            download_url="https://raw.githubusercontent.com/o/r/main/is/is-001/sorter.litematic",
            can_download=True,
        )
    """
    name: str
    download_url: Optional[str]
    content_type: Optional[str] = None
    can_download: bool = True
    size_text: Optional[str] = None
    description: Optional[str] = None
    litematic: Optional[LitematicInfo] = None
    wdl: Optional[WdlInfo] = None
    youtube: Optional[YoutubeInfo] = None

    @classmethod
    def from_dict(cls, data: dict, resolve: Callable[[Optional[str]], Optional[str]]) -> "Attachment":
        """
        Build an attachment from an entry manifest item.

        Args:
            data: One ``attachments`` item of the entry manifest
            resolve: Turns the item's relative ``path`` into an absolute URL
        """
        can_download = data.get("canDownload")
        can_download = True if can_download is None else bool(can_download)
        download_url = resolve(data.get("path")) if can_download else _text(data.get("url"))

        litematic = None
        if isinstance(data.get("litematic"), dict):
            raw = data["litematic"]
            litematic = LitematicInfo(_text(raw.get("version")), _text(raw.get("size")), _text(raw.get("error")))
        wdl = None
        if isinstance(data.get("wdl"), dict):
            raw = data["wdl"]
            wdl = WdlInfo(_text(raw.get("version")), _text(raw.get("error")))
        youtube = None
        if isinstance(data.get("youtube"), dict):
            raw = data["youtube"]
            youtube = YoutubeInfo(
                _text(raw.get("title")), _text(raw.get("author_name")), _text(raw.get("author_url"))
            )

        return cls(
            name=_text(data.get("name")) or "Attachment",
            download_url=download_url,
            content_type=_text(data.get("contentType")),
            can_download=can_download,
            size_text=litematic.size if litematic else None,
            description=_text(data.get("description")),
            litematic=litematic,
            wdl=wdl,
            youtube=youtube,
        )

    @property
    def is_downloadable(self) -> bool:
        return self.can_download and bool(self.download_url)

    @property
    def is_world(self) -> bool:
        """True when the attachment is a ZIP of world saves."""
        return self.wdl is not None


@dataclass(frozen=True)
class ThreadReference:
    """Pointer to the discussion thread an entry was archived from."""
    forum_id: Optional[str] = None
    thread_id: Optional[str] = None
    continuing_message_ids: Tuple[str, ...] = ()
    thread_url: Optional[str] = None
    attachment_message_id: Optional[str] = None
    upload_message_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ThreadReference":
        return cls(
            forum_id=_text(data.get("forumId")),
            thread_id=_text(data.get("threadId")),
            continuing_message_ids=_unique(data.get("continuingMessageIds")),
            thread_url=_text(data.get("threadURL")),
            attachment_message_id=_text(data.get("attachmentMessageId")),
            upload_message_id=_text(data.get("uploadMessageId")),
        )


@dataclass(frozen=True)
class RecordSection:
    """
    A titled block of rendered text derived from one key of a records document.

    Attributes:
        title: Section heading (may be empty for synthesized parents)
        lines: Rendered text lines, never containing raw URLs
        key: Colon-delimited hierarchical key the section was rendered from
        depth: Heading depth from the resolved style
    """
    title: str
    lines: Tuple[str, ...] = ()
    key: str = ""
    depth: int = 2


@dataclass(frozen=True)
class PostDetail:
    """
    Full view of one post, fetched on demand.

    Wraps the catalog summary and adds everything from the entry manifest.
    """
    summary: PostSummary
    authors: Tuple[str, ...] = ()
    images: Tuple[ImageInfo, ...] = ()
    attachments: Tuple[Attachment, ...] = ()
    thread: Optional[ThreadReference] = None
    record_sections: Tuple[RecordSection, ...] = ()
    archived_at: int = 0
    updated_at: int = 0

    @property
    def image_urls(self) -> List[str]:
        return [image.url for image in self.images]

    @property
    def downloadable_attachments(self) -> List[Attachment]:
        return [a for a in self.attachments if a.is_downloadable]


@dataclass(frozen=True)
class Catalog:
    """
    In-memory snapshot of every post and channel of one remote source.

    Published whole by the index cache and never mutated afterwards.

    Attributes:
        posts: Every post summary, channel by channel in config order
        channels: Channels in config order, with computed entry counts
        styles: Schema-level record styles from the root config
    """
    posts: Tuple[PostSummary, ...] = ()
    channels: Tuple[Channel, ...] = ()
    styles: Dict[str, Any] = field(default_factory=dict)

    def find_post(self, key: str) -> Optional[PostSummary]:
        """Find a post by id or short code (case-insensitive)."""
        wanted = (key or "").strip().lower()
        if not wanted:
            return None
        for post in self.posts:
            if (post.id or "").lower() == wanted or (post.code or "").lower() == wanted:
                return post
        return None

    def channel(self, path: str) -> Optional[Channel]:
        """Find a channel by its remote path (case-insensitive)."""
        wanted = (path or "").lower()
        for channel in self.channels:
            if channel.path.lower() == wanted:
                return channel
        return None


@dataclass(frozen=True)
class SearchResult:
    """
    One page of search results.

    Attributes:
        items: Posts on the requested page
        total_pages: Page count for the filtered set, at least 1
        total_items: Number of posts matching the filters
        channel_counts: Channel path -> number of matching posts, for every
                        channel of the catalog (zero when none match)
    """
    items: List[PostSummary]
    total_pages: int
    total_items: int
    channel_counts: Dict[str, int]


@dataclass(frozen=True)
class SaveResult:
    """
    Outcome of saving an attachment.

    Attributes:
        file_name: Name of the written file or primary world directory
        path: Absolute path of that file or directory
        is_world_download: True when a world archive was extracted
        checksum: "sha256:..." of the saved file (None for worlds)
    """
    file_name: str
    path: Path
    is_world_download: bool
    checksum: Optional[str] = None
