"""
Search, filter, sort and paginate over a catalog.

Everything here is pure: no network, no disk, no mutation of the catalog.
All text comparisons are case-insensitive on trimmed values, and missing or
empty filter collections mean "no restriction".
"""

import math
from typing import Collection, Dict, Iterable, List, Optional

from .config import DEFAULT_PAGE_SIZE, DEFAULT_SORT
from .models import Catalog, PostSummary, SearchResult


def _normalize(values: Optional[Iterable[Optional[str]]]) -> List[str]:
    if not values:
        return []
    keys = []
    for value in values:
        if value is None:
            continue
        key = value.strip().lower()
        if key:
            keys.append(key)
    return keys


def _post_tags(post: PostSummary) -> List[str]:
    return [tag.strip().lower() for tag in post.tags if tag]


def matches(
    post: PostSummary,
    query: str = "",
    tag: str = "",
    include_tags: Optional[Collection[str]] = None,
    exclude_tags: Optional[Collection[str]] = None,
    channel_paths: Optional[Collection[str]] = None,
) -> bool:
    """
    Whether one post passes every filter (all predicates AND-combined).

    Takes already-normalized (trimmed, lowercased) arguments.
    """
    if query:
        name = (post.name or "").lower()
        code = (post.code or "").lower()
        if query not in name and query not in code:
            return False

    tags = _post_tags(post)
    if tag and not any(tag in t for t in tags):
        return False
    if include_tags and not all(t in tags for t in include_tags):
        return False
    if exclude_tags and any(t in tags for t in exclude_tags):
        return False
    if channel_paths and post.channel_path.strip().lower() not in channel_paths:
        return False
    return True


def filter_posts(
    posts: Iterable[PostSummary],
    query: Optional[str] = None,
    tag: Optional[str] = None,
    include_tags: Optional[Iterable[str]] = None,
    exclude_tags: Optional[Iterable[str]] = None,
    channel_paths: Optional[Iterable[str]] = None,
) -> List[PostSummary]:
    """Return the posts passing every filter, in their original order."""
    normalized_query = (query or "").strip().lower()
    normalized_tag = (tag or "").strip().lower()
    include = _normalize(include_tags)
    exclude = _normalize(exclude_tags)
    channels = set(_normalize(channel_paths))
    return [
        post for post in posts
        if matches(post, normalized_query, normalized_tag, include, exclude, channels)
    ]


def sort_posts(posts: List[PostSummary], sort: Optional[str] = None) -> List[PostSummary]:
    """
    Return a stably sorted copy of ``posts``.

    * ``updated``: updated timestamp, newest first
    * ``name``: name, A to Z
    * ``code``: short code, A to Z
    * ``newest`` (default, also any unknown value): archived timestamp, newest first
    """
    selected = (sort or DEFAULT_SORT).strip().lower()
    if selected == "updated":
        return sorted(posts, key=lambda p: p.updated_at or p.archived_at, reverse=True)
    if selected == "name":
        return sorted(posts, key=lambda p: (p.name or "").lower())
    if selected == "code":
        return sorted(posts, key=lambda p: (p.code or "").lower())
    return sorted(posts, key=lambda p: p.archived_at, reverse=True)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def search_posts(
    catalog: Catalog,
    query: Optional[str] = None,
    sort: Optional[str] = None,
    include_tags: Optional[Iterable[str]] = None,
    exclude_tags: Optional[Iterable[str]] = None,
    channel_paths: Optional[Iterable[str]] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    tag: Optional[str] = None,
) -> SearchResult:
    """
    Filter, sort and slice the catalog into one page of results.

    Args:
        catalog: Catalog to search
        query: Substring of the post's name or short code
        sort: One of ``newest``, ``updated``, ``name``, ``code``
        include_tags: Posts must carry every one of these tags
        exclude_tags: Posts must carry none of these tags
        channel_paths: Posts must belong to one of these channels
        page: 1-based page number; out-of-range pages come back empty
        page_size: Items per page (values below 1 count as 1)
        tag: Posts must carry a tag containing this substring

    Returns:
        SearchResult whose ``channel_counts`` counts the filtered posts of
        every channel in the catalog, zero included.
    """
    filtered = filter_posts(catalog.posts, query, tag, include_tags, exclude_tags, channel_paths)
    ordered = sort_posts(filtered, sort)

    channel_counts: Dict[str, int] = {channel.path: 0 for channel in catalog.channels}
    for post in ordered:
        channel_counts[post.channel_path] = channel_counts.get(post.channel_path, 0) + 1

    size = max(page_size, 1)
    total_items = len(ordered)
    total_pages = max(1, math.ceil(total_items / size))
    start = _clamp((page - 1) * size, 0, total_items)
    end = _clamp(page * size, 0, total_items)

    return SearchResult(
        items=ordered[start:end],
        total_pages=total_pages,
        total_items=total_items,
        channel_counts=channel_counts,
    )
