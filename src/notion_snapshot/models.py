from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class PageState:
    last_edited_time: str
    cover_local: str | None = None


@dataclass(slots=True)
class DbItemState:
    # Informational only; the snapshot file is what rows are merged into.
    last_edited_time: str


@dataclass(slots=True)
class AssetRecord:
    """One cached binary slot: where it lives locally and what was downloaded into it."""

    local_path: str
    content_hash: str
    size_bytes: int
    last_updated: str
    last_source_url: str


@dataclass(slots=True)
class SyncState:
    last_sync_iso: str | None = None
    pages: dict[str, PageState] = field(default_factory=dict)
    db_items: dict[str, DbItemState] = field(default_factory=dict)
    assets: dict[str, AssetRecord] = field(default_factory=dict)


@dataclass(slots=True)
class AssetStats:
    downloaded: int = 0
    reused: int = 0
    failed: int = 0


@dataclass(slots=True)
class SyncStats:
    pages_changed: int = 0
    pages_unchanged: int = 0
    pages_skipped: int = 0
    databases_synced: int = 0
    rows_updated: int = 0
    rows_removed: int = 0
    assets: AssetStats = field(default_factory=AssetStats)

    def summary(self) -> dict[str, int]:
        return {
            "pages_changed": self.pages_changed,
            "pages_unchanged": self.pages_unchanged,
            "pages_skipped": self.pages_skipped,
            "databases_synced": self.databases_synced,
            "rows_updated": self.rows_updated,
            "rows_removed": self.rows_removed,
            "assets_downloaded": self.assets.downloaded,
            "assets_reused": self.assets.reused,
            "assets_failed": self.assets.failed,
        }


__all__ = [
    "AssetRecord",
    "AssetStats",
    "DbItemState",
    "PageState",
    "SyncState",
    "SyncStats",
]
