"""Typed view over raw block JSON.

Snapshots keep the API's raw block dicts; :func:`parse_block` gives renderers a
closed set of node kinds to match on, with :class:`Opaque` carrying anything the
API adds later.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from .properties import file_url, plain_text

# Block types whose payload is a Notion file object worth caching locally.
# Videos, PDFs and audio are only cached when Notion hosts them; external ones
# are usually players or pages rather than files.
ASSET_BLOCK_TYPES = ("image", "file", "pdf", "video", "audio")
_HOSTED_ONLY = frozenset({"pdf", "video", "audio"})

_LIST_ITEM_TYPES = ("bulleted_list_item", "numbered_list_item", "to_do")


@dataclass(slots=True, frozen=True)
class Heading:
    id: str
    level: int
    text: str
    children: tuple["Block", ...] = ()


@dataclass(slots=True, frozen=True)
class Paragraph:
    id: str
    text: str
    children: tuple["Block", ...] = ()


@dataclass(slots=True, frozen=True)
class ListItem:
    id: str
    style: str
    text: str
    checked: bool | None = None
    children: tuple["Block", ...] = ()


@dataclass(slots=True, frozen=True)
class Quote:
    id: str
    text: str
    children: tuple["Block", ...] = ()


@dataclass(slots=True, frozen=True)
class Callout:
    id: str
    text: str
    icon: str | None = None
    children: tuple["Block", ...] = ()


@dataclass(slots=True, frozen=True)
class Media:
    """Image, file, video, pdf or audio block."""

    id: str
    kind: str
    url: str | None
    local: str | None
    caption: str = ""


@dataclass(slots=True, frozen=True)
class Embed:
    id: str
    url: str | None


@dataclass(slots=True, frozen=True)
class Bookmark:
    id: str
    url: str | None
    caption: str = ""


@dataclass(slots=True, frozen=True)
class ColumnList:
    id: str
    children: tuple["Block", ...] = ()


@dataclass(slots=True, frozen=True)
class Column:
    id: str
    children: tuple["Block", ...] = ()


@dataclass(slots=True, frozen=True)
class Toggle:
    id: str
    text: str
    children: tuple["Block", ...] = ()


@dataclass(slots=True, frozen=True)
class Opaque:
    id: str
    type: str
    raw: dict[str, Any] = field(default_factory=dict)
    children: tuple["Block", ...] = ()


Block = Union[
    Heading, Paragraph, ListItem, Quote, Callout, Media, Embed, Bookmark, ColumnList, Column, Toggle, Opaque
]


def asset_source(block: dict[str, Any]) -> tuple[str, str | None] | None:
    """``(slot, url)`` for a block carrying a cacheable binary, else ``None``."""
    block_type = block.get("type")
    if block_type not in ASSET_BLOCK_TYPES:
        return None
    payload = block.get(block_type)
    if not isinstance(payload, dict):
        return None
    if block_type in _HOSTED_ONLY and payload.get("type") != "file":
        return None
    return block_type, file_url(payload)


def parse_blocks(raw_blocks: list[dict[str, Any]]) -> list[Block]:
    return [parse_block(raw) for raw in raw_blocks if isinstance(raw, dict)]


def parse_block(raw: dict[str, Any]) -> Block:
    block_id = str(raw.get("id") or "")
    block_type = str(raw.get("type") or "")
    payload = raw.get(block_type)
    payload = payload if isinstance(payload, dict) else {}
    children = tuple(parse_blocks(raw.get("children") or []))
    text = plain_text(payload.get("rich_text"))

    if block_type in ("heading_1", "heading_2", "heading_3"):
        return Heading(id=block_id, level=int(block_type[-1]), text=text, children=children)
    if block_type == "paragraph":
        return Paragraph(id=block_id, text=text, children=children)
    if block_type in _LIST_ITEM_TYPES:
        checked = payload.get("checked") if block_type == "to_do" else None
        return ListItem(id=block_id, style=block_type, text=text, checked=checked, children=children)
    if block_type == "quote":
        return Quote(id=block_id, text=text, children=children)
    if block_type == "callout":
        icon = payload.get("icon")
        emoji = icon.get("emoji") if isinstance(icon, dict) else None
        return Callout(id=block_id, text=text, icon=emoji, children=children)
    if block_type in ASSET_BLOCK_TYPES:
        return Media(
            id=block_id,
            kind=block_type,
            url=file_url(payload),
            local=payload.get("local"),
            caption=plain_text(payload.get("caption")),
        )
    if block_type == "embed":
        return Embed(id=block_id, url=payload.get("url"))
    if block_type == "bookmark":
        return Bookmark(id=block_id, url=payload.get("url"), caption=plain_text(payload.get("caption")))
    if block_type == "column_list":
        return ColumnList(id=block_id, children=children)
    if block_type == "column":
        return Column(id=block_id, children=children)
    if block_type == "toggle":
        return Toggle(id=block_id, text=text, children=children)
    return Opaque(id=block_id, type=block_type, raw=raw, children=children)


__all__ = [
    "ASSET_BLOCK_TYPES",
    "Block",
    "Bookmark",
    "Callout",
    "Column",
    "ColumnList",
    "Embed",
    "Heading",
    "ListItem",
    "Media",
    "Opaque",
    "Paragraph",
    "Quote",
    "Toggle",
    "asset_source",
    "parse_block",
    "parse_blocks",
]
