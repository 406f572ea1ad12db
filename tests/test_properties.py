from __future__ import annotations

from notion_snapshot.properties import DateRange, FileRef, file_properties, file_url, get_property

ROW = {
    "id": "r1",
    "properties": {
        "Name": {"type": "title", "title": [{"plain_text": "Ada "}, {"plain_text": "Lovelace"}]},
        "Role": {"type": "select", "select": {"name": "Engineer"}},
        "Team": {"type": "select", "select": None},
        "Tags": {"type": "multi_select", "multi_select": [{"name": "math"}, {"name": "poetry"}]},
        "Photo": {
            "type": "files",
            "files": [
                {"name": "ada.png", "type": "file", "file": {"url": "https://s3/ada.png"}, "local": "./images/a.png"},
                {"name": "alt", "type": "external", "external": {"url": "https://cdn/alt.jpg"}},
            ],
        },
        "Joined": {"type": "date", "date": {"start": "1842-01-01", "end": None}},
        "Site": {"type": "url", "url": "https://example.com"},
        "Owners": {"type": "people", "people": [{"id": "u1", "name": "Charles"}, {"id": "u2"}]},
        "Rank": {"type": "number", "number": 1},
        "Active": {"type": "checkbox", "checkbox": False},
    },
}


def test_text_kinds() -> None:
    assert get_property(ROW, "Name", "title") == "Ada Lovelace"


def test_options() -> None:
    assert get_property(ROW, "Role", "select") == "Engineer"
    assert get_property(ROW, "Team", "select") is None
    assert get_property(ROW, "Tags", "multi_select") == ["math", "poetry"]


def test_files() -> None:
    assert get_property(ROW, "Photo", "files") == [
        FileRef(name="ada.png", url="https://s3/ada.png", local="./images/a.png"),
        FileRef(name="alt", url="https://cdn/alt.jpg", local=None),
    ]


def test_scalars() -> None:
    assert get_property(ROW, "Joined", "date") == DateRange(start="1842-01-01", end=None)
    assert get_property(ROW, "Site", "url") == "https://example.com"
    assert get_property(ROW, "Owners", "people") == ["Charles", "u2"]
    assert get_property(ROW, "Rank", "number") == 1
    assert get_property(ROW, "Active", "checkbox") is False


def test_name_miss_and_kind_mismatch_return_none() -> None:
    assert get_property(ROW, "Missing", "title") is None
    assert get_property(ROW, "Role", "multi_select") is None
    assert get_property({"id": "x"}, "Name", "title") is None


def test_file_url_variants() -> None:
    assert file_url({"type": "file", "file": {"url": "https://s3/a"}}) == "https://s3/a"
    assert file_url({"type": "external", "external": {"url": "https://cdn/b"}}) == "https://cdn/b"
    assert file_url({"type": "emoji", "emoji": "x"}) is None
    assert file_url(None) is None


def test_file_properties_lists_only_files() -> None:
    assert [name for name, _ in file_properties(ROW)] == ["Photo"]
