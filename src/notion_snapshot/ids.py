from __future__ import annotations

import re

_HEX32_RE = re.compile(r"[0-9a-fA-F]{32}")
_HEX32_FULL_RE = re.compile(r"^[0-9a-fA-F]{32}$")


def normalize_id(value: object) -> str | None:
    """Return the canonical 32-char lowercase hex id embedded in ``value``.

    Accepts a raw id, the hyphenated UUID form, or a URL containing either.
    Anything else yields ``None``.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    match = _HEX32_RE.search(text)
    if match:
        return match.group(0).lower()
    compact = text.replace("-", "")
    if _HEX32_FULL_RE.match(compact):
        return compact.lower()
    return None


__all__ = ["normalize_id"]
