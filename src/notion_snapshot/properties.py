"""Typed access to database row properties.

Rows come back from the API as a bag of named properties, each tagged with a
declared ``type``. :func:`get_property` looks a property up by name and the kind
the caller expects and returns ``None`` when either does not match.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union

PropertyKind = Literal[
    "title",
    "rich_text",
    "select",
    "status",
    "multi_select",
    "files",
    "date",
    "url",
    "email",
    "people",
    "number",
    "checkbox",
]


@dataclass(slots=True, frozen=True)
class FileRef:
    name: str
    url: str | None
    local: str | None


@dataclass(slots=True, frozen=True)
class DateRange:
    start: str | None
    end: str | None


PropertyValue = Union[str, float, int, bool, list[str], list[FileRef], DateRange, None]


def file_url(obj: Any) -> str | None:
    """Source URL of a Notion file object, hosted (``file``) or ``external``."""
    if not isinstance(obj, dict):
        return None
    for slot in ("file", "external"):
        inner = obj.get(slot)
        if isinstance(inner, dict) and inner.get("url"):
            return str(inner["url"])
    return None


def plain_text(rich_text: Any) -> str:
    if not isinstance(rich_text, list):
        return ""
    return "".join(str(part.get("plain_text") or "") for part in rich_text if isinstance(part, dict))


def get_property(row: dict[str, Any], name: str, kind: PropertyKind) -> PropertyValue:
    props = row.get("properties")
    if not isinstance(props, dict):
        return None
    prop = props.get(name)
    if not isinstance(prop, dict) or prop.get("type") != kind:
        return None
    value = prop.get(kind)
    reader = _READERS.get(kind)
    return reader(value) if reader else None


def _read_text(value: Any) -> str:
    return plain_text(value)


def _read_option(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("name")
    return None


def _read_options(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [opt["name"] for opt in value if isinstance(opt, dict) and opt.get("name")]


def _read_files(value: Any) -> list[FileRef]:
    if not isinstance(value, list):
        return []
    return [
        FileRef(name=str(f.get("name") or ""), url=file_url(f), local=f.get("local"))
        for f in value
        if isinstance(f, dict)
    ]


def _read_date(value: Any) -> DateRange | None:
    if not isinstance(value, dict):
        return None
    return DateRange(start=value.get("start"), end=value.get("end"))


def _read_people(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    names = []
    for person in value:
        if isinstance(person, dict):
            names.append(str(person.get("name") or person.get("id") or ""))
    return names


def _read_scalar(value: Any) -> Any:
    return value


def _read_checkbox(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def _read_number(value: Any) -> float | int | None:
    if isinstance(value, bool):
        return None
    return value if isinstance(value, (int, float)) else None


_READERS = {
    "title": _read_text,
    "rich_text": _read_text,
    "select": _read_option,
    "status": _read_option,
    "multi_select": _read_options,
    "files": _read_files,
    "date": _read_date,
    "url": _read_scalar,
    "email": _read_scalar,
    "people": _read_people,
    "number": _read_number,
    "checkbox": _read_checkbox,
}


def file_properties(row: dict[str, Any]) -> list[tuple[str, list[dict[str, Any]]]]:
    """``(name, files)`` for every files-typed property of ``row``, in row order."""
    props = row.get("properties")
    if not isinstance(props, dict):
        return []
    found = []
    for name, prop in props.items():
        if isinstance(prop, dict) and prop.get("type") == "files" and isinstance(prop.get("files"), list):
            found.append((name, prop["files"]))
    return found


__all__ = [
    "DateRange",
    "FileRef",
    "PropertyKind",
    "PropertyValue",
    "file_properties",
    "file_url",
    "get_property",
    "plain_text",
]
