"""Durable sync ledger: watermark, per-resource stamps and the asset index.

The JSON layout matches the state file written by the earlier Node tooling
(``lastSyncISO``, ``pages``, ``dbItems``) so an existing cache stays valid; the
``assets`` section is new.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .filesystem import write_json_atomic
from .models import AssetRecord, DbItemState, PageState, SyncState

logger = logging.getLogger(__name__)

SAFETY_MARGIN_MINUTES = 2


def utc_now_iso() -> str:
    return format_iso(datetime.now(timezone.utc))


def format_iso(value: datetime) -> str:
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def since_with_margin(watermark: str | None, minutes: int = SAFETY_MARGIN_MINUTES) -> str | None:
    """Lower bound for an incremental query: the watermark minus a skew margin."""
    parsed = parse_iso(watermark)
    if parsed is None:
        return None
    return format_iso(parsed - timedelta(minutes=minutes))


def is_newer(candidate: str | None, previous: str | None) -> bool:
    """True when ``candidate`` is strictly later than ``previous``."""
    new = parse_iso(candidate)
    old = parse_iso(previous)
    if old is None:
        return True
    if new is None:
        return False
    return new > old


class StateStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> SyncState:
        if not self.path.exists():
            return SyncState()
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("State file %s unreadable (%s); starting from a full sync", self.path, exc)
            return SyncState()
        if not isinstance(raw, dict):
            logger.warning("State file %s is not a mapping; starting from a full sync", self.path)
            return SyncState()
        return state_from_dict(raw)

    def save(self, state: SyncState) -> None:
        write_json_atomic(self.path, state_to_dict(state))
        logger.debug("Saved state to %s (assets=%d)", self.path, len(state.assets))


def state_to_dict(state: SyncState) -> dict[str, Any]:
    return {
        "lastSyncISO": state.last_sync_iso,
        "pages": {
            page_id: {"last_edited_time": page.last_edited_time, "cover_local": page.cover_local}
            for page_id, page in state.pages.items()
        },
        "dbItems": {row_id: {"last_edited_time": item.last_edited_time} for row_id, item in state.db_items.items()},
        "assets": {
            key: {
                "local_path": rec.local_path,
                "content_hash": rec.content_hash,
                "size_bytes": rec.size_bytes,
                "last_updated": rec.last_updated,
                "last_source_url": rec.last_source_url,
            }
            for key, rec in state.assets.items()
        },
    }


def state_from_dict(raw: dict[str, Any]) -> SyncState:
    state = SyncState()
    last_sync = raw.get("lastSyncISO")
    state.last_sync_iso = last_sync if isinstance(last_sync, str) and parse_iso(last_sync) else None

    for page_id, entry in _mapping(raw.get("pages")).items():
        if isinstance(entry, dict) and isinstance(entry.get("last_edited_time"), str):
            state.pages[page_id] = PageState(
                last_edited_time=entry["last_edited_time"],
                cover_local=entry.get("cover_local") or None,
            )

    for row_id, entry in _mapping(raw.get("dbItems")).items():
        if isinstance(entry, dict) and isinstance(entry.get("last_edited_time"), str):
            state.db_items[row_id] = DbItemState(last_edited_time=entry["last_edited_time"])

    for key, entry in _mapping(raw.get("assets")).items():
        if not isinstance(entry, dict) or not entry.get("local_path"):
            continue
        try:
            state.assets[key] = AssetRecord(
                local_path=str(entry["local_path"]),
                content_hash=str(entry.get("content_hash") or ""),
                size_bytes=int(entry.get("size_bytes") or 0),
                last_updated=str(entry.get("last_updated") or ""),
                last_source_url=str(entry.get("last_source_url") or ""),
            )
        except (TypeError, ValueError):
            logger.debug("Dropping malformed asset record %s", key)
    return state


def _mapping(value: object) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


__all__ = [
    "SAFETY_MARGIN_MINUTES",
    "StateStore",
    "format_iso",
    "is_newer",
    "parse_iso",
    "since_with_margin",
    "state_from_dict",
    "state_to_dict",
    "utc_now_iso",
]
