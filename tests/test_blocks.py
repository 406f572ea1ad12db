from __future__ import annotations

from notion_snapshot.blocks import (
    Callout,
    Heading,
    ListItem,
    Media,
    Opaque,
    Paragraph,
    Toggle,
    asset_source,
    parse_block,
    parse_blocks,
)


def _text(value: str) -> list[dict]:
    return [{"plain_text": value}]


def test_parse_known_kinds() -> None:
    blocks = parse_blocks(
        [
            {"id": "h", "type": "heading_2", "heading_2": {"rich_text": _text("Title")}},
            {"id": "t", "type": "to_do", "to_do": {"rich_text": _text("task"), "checked": True}},
            {"id": "c", "type": "callout", "callout": {"rich_text": _text("note"), "icon": {"emoji": "💡"}}},
            {
                "id": "i",
                "type": "image",
                "image": {"type": "file", "file": {"url": "https://s3/x.png"}, "local": "./images/x.png"},
            },
        ]
    )
    assert blocks[0] == Heading(id="h", level=2, text="Title")
    assert blocks[1] == ListItem(id="t", style="to_do", text="task", checked=True)
    assert blocks[2] == Callout(id="c", text="note", icon="💡")
    assert blocks[3] == Media(id="i", kind="image", url="https://s3/x.png", local="./images/x.png")


def test_children_are_parsed_recursively() -> None:
    block = parse_block(
        {
            "id": "tg",
            "type": "toggle",
            "toggle": {"rich_text": _text("more")},
            "children": [{"id": "p", "type": "paragraph", "paragraph": {"rich_text": _text("hidden")}}],
        }
    )
    assert isinstance(block, Toggle)
    assert block.children == (Paragraph(id="p", text="hidden"),)


def test_unknown_kind_is_preserved() -> None:
    raw = {"id": "z", "type": "synced_block", "synced_block": {"synced_from": None}}
    block = parse_block(raw)
    assert isinstance(block, Opaque)
    assert block.type == "synced_block"
    assert block.raw is raw


def test_asset_source() -> None:
    image = {"id": "i", "type": "image", "image": {"type": "external", "external": {"url": "https://cdn/x.gif"}}}
    assert asset_source(image) == ("image", "https://cdn/x.gif")
    hosted_pdf = {"id": "p", "type": "pdf", "pdf": {"type": "file", "file": {"url": "https://s3/d.pdf"}}}
    assert asset_source(hosted_pdf) == ("pdf", "https://s3/d.pdf")
    external_video = {"id": "v", "type": "video", "video": {"type": "external", "external": {"url": "https://yt"}}}
    assert asset_source(external_video) is None
    assert asset_source({"id": "x", "type": "paragraph", "paragraph": {}}) is None
