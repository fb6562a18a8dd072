"""
Render a post's structured "records" document into ordered text sections.

A records document maps colon-delimited keys ("description",
"design:notes", ...) to arbitrary JSON values. Each key becomes one
:class:`~archive_mirror.models.RecordSection`; its value is turned into
plain text lines:

* scalar          -> its text
* array           -> one "- " (or "1. ") line per element; object elements
                     may carry a ``title`` and a nested ``items`` list
* object + items  -> the nested list, starting at indent 0
* other object    -> compact JSON

Links never survive rendering: ``[text](http://...)`` becomes
``text (link removed)`` and bare URLs become ``(link removed)``.
"""

import re
from typing import Any, Dict, List, Mapping, Optional

import orjson

from .models import RecordSection
from .styles import StyleInfo, resolve_style

_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\(https?://[^\s)]+\)", re.IGNORECASE)
_BARE_URL = re.compile(r"https?://\S+", re.IGNORECASE)
_LINE_BREAK = re.compile(r"\r?\n")

FIRST_SECTION_TITLE = "Description"


def strip_urls(text: Optional[str]) -> str:
    """
    Replace markdown links and bare URLs with a "link removed" marker.

    Example:
        strip_urls("see [docs](https://x.io/a) or https://x.io/b")
        # Returns: "see docs (link removed) or (link removed)"
    """
    if not text:
        return ""
    text = _MARKDOWN_LINK.sub(r"\1 (link removed)", text)
    return _BARE_URL.sub("(link removed)", text)


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def _nested_list(node: Mapping[str, Any], indent_level: int) -> List[str]:
    """Render a ``{isOrdered, items: [...]}`` node, recursing into child lists."""
    ordered = bool(node.get("isOrdered"))
    items = node.get("items")
    if not isinstance(items, list):
        items = []
    indent = "  " * max(indent_level, 0)
    step = 2 if ordered else 1

    lines = []
    for number, item in enumerate(items, start=1):
        prefix = f"{indent}{number}. " if ordered else f"{indent}- "
        if _is_scalar(item):
            lines.append(prefix + strip_urls(_scalar_text(item)))
        elif isinstance(item, dict):
            if "title" in item and item["title"] is not None:
                lines.append(prefix + strip_urls(_scalar_text(item["title"])))
            if "items" in item:
                lines.extend(_nested_list(item, indent_level + step))
    return lines


def record_to_text(value: Any, style: StyleInfo) -> str:
    """Convert one record value to text using its resolved style."""
    if value is None:
        return ""

    if isinstance(value, list):
        ordered = bool(style.is_ordered)
        lines = []
        for number, item in enumerate(value, start=1):
            prefix = f"{number}. " if ordered else "- "
            if _is_scalar(item):
                lines.append(prefix + strip_urls(_scalar_text(item)))
            elif isinstance(item, dict):
                if "title" in item and item["title"] is not None:
                    lines.append(prefix + strip_urls(_scalar_text(item["title"])))
                if "items" in item:
                    lines.extend(_nested_list(item, 2 if ordered else 1))
        text = "\n".join(lines)
    elif isinstance(value, dict):
        if "items" in value:
            text = "\n".join(_nested_list(value, 0))
        else:
            text = strip_urls(orjson.dumps(value).decode("utf-8"))
    else:
        text = strip_urls(_scalar_text(value))

    return strip_urls(text.strip())


class _Section:
    """Mutable section under construction."""

    def __init__(self, key: str, title: Optional[str], depth: int):
        self.key = key
        self.title = title or ""
        self.depth = depth
        self.lines: List[str] = []

    def add_text(self, text: str) -> None:
        for line in _LINE_BREAK.split(text):
            line = line.rstrip()
            if line:
                self.lines.append(line)


def _parent_keys(key: str) -> List[str]:
    """Every proper prefix of a colon-delimited key, outermost first."""
    parts = key.split(":")
    return [":".join(parts[:i]) for i in range(1, len(parts))]


def render_records(
    records: Optional[Mapping[str, Any]],
    schema_styles: Optional[Mapping[str, Any]] = None,
    entry_styles: Optional[Mapping[str, Any]] = None,
) -> List[RecordSection]:
    """
    Render a records document into ordered sections.

    How it works:
        1. Visit the keys in document order
        2. For a nested key ("design:notes"), reserve a slot for every missing
           ancestor ("design") first, each with its own resolved style, so a
           parent always precedes its first child
        3. Resolve the key's style and convert its value to text
        4. Split the text into lines, dropping blank ones
        5. Return only the sections that ended up with lines

    Why reserve ancestor slots?
        Sections are ordered by first appearance. A parent whose own key comes
        later in the document ("design" after "design:notes") must still be
        listed before its child. A reserved slot that never receives content
        is dropped, so no section is ever returned without lines.

    Headings are URL-stripped like every other rendered text. The first key
    that renders text gets the heading "Description" when its style leaves
    the heading blank.

    Args:
        records: The entry's ``records`` object (None or empty -> no sections)
        schema_styles: ``postStyle`` from the root config
        entry_styles: The entry's own ``styles`` map

    Example:
        render_records({"features": ["fast", "tileable"]})
        # Returns: [RecordSection(title="Features", lines=("- fast", "- tileable"), ...)]
    """
    if not records:
        return []

    sections: Dict[str, _Section] = {}
    is_first = True

    for key, value in records.items():
        # -------------------------------------------------------
        # Reserve ancestors so they sort before this key
        # -------------------------------------------------------
        for parent in _parent_keys(key):
            if parent not in sections:
                parent_style = resolve_style(parent, schema_styles, entry_styles)
                sections[parent] = _Section(parent, strip_urls(parent_style.header_text), parent_style.depth)

        # -------------------------------------------------------
        # Render the key's own value
        # -------------------------------------------------------
        style = resolve_style(key, schema_styles, entry_styles)
        text = record_to_text(value, style)
        if not text:
            continue

        title = strip_urls(style.header_text)
        if is_first and not title.strip():
            title = FIRST_SECTION_TITLE
        section = sections.get(key)
        if section is None:
            section = sections[key] = _Section(key, title, style.depth)
        elif not section.title.strip():
            section.title = title
        section.add_text(text)
        is_first = False

    return [
        RecordSection(title=s.title, lines=tuple(s.lines), key=s.key, depth=s.depth)
        for s in sections.values()
        if s.lines
    ]
