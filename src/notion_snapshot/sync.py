from __future__ import annotations

import contextlib
import logging
from pathlib import Path
from typing import Any, ContextManager, Sequence

from .assets import AssetCache, cover_asset_key, property_asset_key
from .config import Settings
from .fetcher import BlockTreeFetcher
from .ids import normalize_id
from .models import DbItemState, PageState, SyncState, SyncStats
from .notion_client import NotionClient, NotionError
from .properties import file_properties, file_url
from .retry import RetryExecutor
from .snapshots import db_snapshot_path, page_snapshot_path, read_collection, snapshot_lock, write_snapshot
from .state import StateStore, is_newer, since_with_margin, utc_now_iso

logger = logging.getLogger(__name__)


def last_edited_filter(since_iso: str) -> dict[str, Any]:
    """Server-side filter for rows edited at or after ``since_iso``."""
    return {"timestamp": "last_edited_time", "last_edited_time": {"on_or_after": since_iso}}


class SyncService:
    def __init__(
        self,
        settings: Settings,
        *,
        client: NotionClient | None = None,
        retry: RetryExecutor | None = None,
        dry_run: bool = False,
    ) -> None:
        self.settings = settings
        self.dry_run = dry_run
        try:
            self.client = client or NotionClient(settings.token, rpm=settings.rpm, timeout=settings.timeout)
        except NotionError as exc:
            logger.error("Failed to initialize Notion client: %s", exc)
            raise
        self.retry = retry or RetryExecutor(
            max_attempts=settings.max_attempts,
            base_ms=settings.backoff_base_ms,
            cap_ms=settings.backoff_cap_ms,
        )
        self.store = StateStore(settings.state_file)
        self.assets = AssetCache(
            self.client,
            self.retry,
            settings.asset_dir,
            url_prefix=settings.asset_url_prefix,
            failures_dir=settings.cache_dir,
            dry_run=dry_run,
        )
        self.fetcher = BlockTreeFetcher(self.client, self.retry, self.assets, max_depth=settings.max_depth)
        self.stats = SyncStats(assets=self.assets.stats)

    async def close(self) -> None:
        await self.client.close()

    async def auth_check(self) -> bool:
        return await self.client.auth_check()

    def _lock(self, path: Path) -> ContextManager[object]:
        if self.dry_run:
            return contextlib.nullcontext()
        return snapshot_lock(self.settings.cache_dir / "locks", path)

    async def run(self, *, full: bool = False, fetch_blocks_for_db: bool = False) -> SyncStats:
        """Sync every configured page and database, then persist state once."""
        started = utc_now_iso()
        state = self.store.load()
        full_mode = full or state.last_sync_iso is None
        since_iso = None if full_mode else since_with_margin(state.last_sync_iso)
        if full_mode:
            logger.info("FULL sync")
        else:
            logger.info("INCREMENTAL sync since %s", since_iso)

        aliases_by_page: dict[str, list[str]] = {}
        for alias, raw_id in self.settings.pages.items():
            page_id = normalize_id(raw_id)
            if not page_id:
                logger.warning("Page %s has no valid id (%r); skipping", alias, raw_id)
                self.stats.pages_skipped += 1
                continue
            aliases = aliases_by_page.setdefault(page_id, [])
            if aliases:
                logger.warning("Page %s shares id %s with %s; writing both snapshots", alias, page_id, aliases[0])
            aliases.append(alias)

        for page_id, aliases in aliases_by_page.items():
            await self.sync_page(state, page_id, aliases[0], extra_aliases=aliases[1:])

        for name, raw_id in self.settings.databases.items():
            database_id = normalize_id(raw_id)
            if not database_id:
                logger.warning("Database %s has no valid id (%r); skipping", name, raw_id)
                continue
            await self.sync_collection(
                state,
                database_id,
                name,
                since_iso=since_iso,
                full_mode=full_mode,
                fetch_blocks=fetch_blocks_for_db,
            )

        state.last_sync_iso = started
        if self.dry_run:
            logger.info("[DRY-RUN] state not saved")
        else:
            self.store.save(state)
        logger.info("%s sync done: %s", "FULL" if full_mode else "INCREMENTAL", self.stats.summary())
        return self.stats

    async def sync_page(
        self,
        state: SyncState,
        page_id: str,
        alias: str | None = None,
        *,
        extra_aliases: Sequence[str] = (),
    ) -> dict[str, Any] | None:
        """Refresh one page's snapshot if it was edited since the last sync.

        The same payload is written under ``alias`` and every ``extra_aliases``
        name. A page whose snapshot file is missing counts as changed. Returns
        the written snapshot, or ``None`` when the page is unchanged.
        """
        meta = await self.retry.execute(
            lambda: self.client.retrieve_page(page_id),
            label=f"pages.retrieve {page_id}",
        )
        out_files = [page_snapshot_path(self.settings.out_dir, name) for name in (alias or page_id, *extra_aliases)]
        prev = state.pages.get(page_id)
        have_files = self.dry_run or all(path.exists() for path in out_files)
        if prev is not None and have_files and not is_newer(meta.get("last_edited_time"), prev.last_edited_time):
            logger.info("= page unchanged: %s", alias or page_id)
            self.stats.pages_unchanged += 1
            return None

        logger.info("→ page changed: %s", alias or page_id)
        blocks = await self.fetcher.fetch_tree(state, page_id)
        cover_url = file_url(meta.get("cover"))
        if cover_url:
            cover_local = await self.assets.resolve(state, cover_asset_key(page_id), cover_url, "cover")
        else:
            cover_local = prev.cover_local if prev else None

        payload = {"page": meta, "blocks": blocks, "cover_local": cover_local}
        if self.dry_run:
            logger.info("[DRY-RUN] would write snapshot for %s", alias or page_id)
        else:
            for out_file in out_files:
                with self._lock(out_file):
                    write_snapshot(out_file, payload)

        state.pages[page_id] = PageState(
            last_edited_time=str(meta.get("last_edited_time") or ""),
            cover_local=cover_local,
        )
        self.stats.pages_changed += 1
        return payload

    async def sync_collection(
        self,
        state: SyncState,
        database_id: str,
        out_name: str,
        *,
        since_iso: str | None = None,
        full_mode: bool = False,
        fetch_blocks: bool = False,
    ) -> list[dict[str, Any]]:
        """Merge rows edited since ``since_iso`` into the ``out_name`` snapshot.

        Rows are replaced whole, keyed by id. Rows missing upstream are only
        dropped in full mode, where the id enumeration is known to be complete.
        """
        changed = await self.query_rows(database_id, None if full_mode else since_iso)
        logger.info(
            "→ DB %s: %d changed %s",
            out_name,
            len(changed),
            "(full)" if full_mode else "(incremental)",
        )

        out_file = db_snapshot_path(self.settings.out_dir, out_name)
        with self._lock(out_file):
            by_id = {row["id"]: row for row in read_collection(out_file)}

            for row in changed:
                await self._localize_row(state, row, fetch_blocks=fetch_blocks)
                by_id[row["id"]] = row
                state.db_items[row["id"]] = DbItemState(last_edited_time=str(row.get("last_edited_time") or ""))
            self.stats.rows_updated += len(changed)

            if full_mode:
                current_ids = set(await self.all_row_ids(database_id))
                removed = [row_id for row_id in by_id if row_id not in current_ids]
                for row_id in removed:
                    del by_id[row_id]
                    state.db_items.pop(row_id, None)
                if removed:
                    logger.info("DB %s: removed %d rows no longer upstream", out_name, len(removed))
                self.stats.rows_removed += len(removed)

            rows = list(by_id.values())
            if self.dry_run:
                logger.info("[DRY-RUN] would write %d rows to %s", len(rows), out_file.name)
            else:
                write_snapshot(out_file, {"results": rows})
        self.stats.databases_synced += 1
        return rows

    async def query_rows(self, database_id: str, since_iso: str | None) -> list[dict[str, Any]]:
        """All rows of a database, or only those edited on/after ``since_iso``."""
        filter_ = last_edited_filter(since_iso) if since_iso else None
        label = f"databases.query {database_id}" if since_iso else f"databases.query(all) {database_id}"
        rows: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            page = await self.retry.execute(
                lambda: self.client.query_database(database_id, cursor, filter_),
                label=label,
            )
            rows.extend(page.get("results") or [])
            cursor = page.get("next_cursor")
            if not page.get("has_more") or not cursor:
                break
        return rows

    async def all_row_ids(self, database_id: str) -> list[str]:
        return [row["id"] for row in await self.query_rows(database_id, None)]

    async def _localize_row(self, state: SyncState, row: dict[str, Any], *, fetch_blocks: bool) -> None:
        row_id = row["id"]
        cover_url = file_url(row.get("cover"))
        if cover_url:
            row["cover_local"] = await self.assets.resolve(state, cover_asset_key(row_id), cover_url, "cover")

        for prop_name, files in file_properties(row):
            for index, entry in enumerate(files):
                url = file_url(entry)
                if not url:
                    continue
                key = property_asset_key(row_id, prop_name, index)
                entry["local"] = await self.assets.resolve(state, key, url, "file")

        if fetch_blocks:
            row["blocks"] = await self.fetcher.fetch_tree(state, row_id)


__all__ = ["SyncService", "last_edited_filter"]
