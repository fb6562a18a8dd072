"""
Display-style resolution for record sections.

A style can come from three places, highest precedence first:

1. the entry's own ``styles`` map (per-post override),
2. the root config's ``postStyle`` map (schema default),
3. the built-in default: depth 2, bulleted, header = the capitalized last
   segment of the colon-delimited key.

Each field is merged independently, so an override that only sets
``isOrdered`` keeps the header from the layer below.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

DEFAULT_DEPTH = 2


@dataclass(frozen=True)
class StyleInfo:
    """
    Display style for one record key. ``None`` means "not set at this layer".

    Attributes:
        depth: Heading nesting depth
        header_text: Section heading
        is_ordered: Numbered (True) or bulleted (False) lists
    """
    depth: Optional[int] = None
    header_text: Optional[str] = None
    is_ordered: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["StyleInfo"]:
        """Parse a ``{depth, headerText, isOrdered}`` object; None for anything else."""
        if isinstance(data, StyleInfo):
            return data
        if not isinstance(data, Mapping):
            return None
        depth = data.get("depth")
        header = data.get("headerText")
        ordered = data.get("isOrdered")
        return cls(
            depth=depth if isinstance(depth, int) and not isinstance(depth, bool) else None,
            header_text=str(header) if header is not None else None,
            is_ordered=bool(ordered) if ordered is not None else None,
        )

    def merged_over(self, base: "StyleInfo") -> "StyleInfo":
        """Return ``base`` with every field set on ``self`` overriding it."""
        return StyleInfo(
            depth=self.depth if self.depth is not None else base.depth,
            header_text=self.header_text if self.header_text is not None else base.header_text,
            is_ordered=self.is_ordered if self.is_ordered is not None else base.is_ordered,
        )


def default_header(key: Optional[str]) -> str:
    """
    Heading used when no layer sets one.

    Example:
        default_header("design:notes")  # "Notes"
    """
    if not key:
        return ""
    target = key.split(":")[-1]
    return target[:1].upper() + target[1:]


def default_style(key: Optional[str]) -> StyleInfo:
    return StyleInfo(depth=DEFAULT_DEPTH, header_text=default_header(key), is_ordered=False)


def resolve_style(
    key: str,
    schema_styles: Optional[Mapping[str, Any]] = None,
    entry_styles: Optional[Mapping[str, Any]] = None,
) -> StyleInfo:
    """
    Compute the effective style for ``key``.

    Both style maps may hold raw JSON objects or :class:`StyleInfo` values;
    either may be None. The result always has every field set.
    """
    style = default_style(key)
    for layer in (schema_styles, entry_styles):
        if not layer:
            continue
        override = StyleInfo.from_dict(layer.get(key))
        if override is not None:
            style = override.merged_over(style)
    return style
