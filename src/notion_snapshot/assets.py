"""Local cache for images and files referenced from Notion content.

Notion hands out signed S3 URLs that expire within the hour, so a URL says
nothing about whether the bytes changed. Entries are therefore keyed by the
slot they fill (``block:<id>:image``, ``page:<id>:cover``,
``page:<id>:prop:<name>:<i>``) and a slot whose file is still on disk is never
fetched again. Files are named after a hash of their content so identical
downloads land on the same name and are written once.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from .failures import append_failure
from .filesystem import compute_sha256, write_bytes_atomic
from .models import AssetRecord, AssetStats, SyncState
from .notion_client import NotionClient
from .retry import RetryError, RetryExecutor
from .state import utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "bin"
MAX_EXTENSION_LENGTH = 6
HASH_PREFIX_LENGTH = 16

_HINT_RE = re.compile(r"[^A-Za-z0-9_-]+")


def block_asset_key(block_id: str, slot: str) -> str:
    return f"block:{block_id}:{slot}"


def cover_asset_key(page_id: str) -> str:
    return f"page:{page_id}:cover"


def property_asset_key(page_id: str, prop_name: str, index: int) -> str:
    return f"page:{page_id}:prop:{prop_name}:{index}"


def safe_ext_from_url(url: str, fallback: str = DEFAULT_EXTENSION) -> str:
    """File extension of the URL path's last segment, or ``fallback``."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return fallback
    name = PurePosixPath(path).name
    if "." not in name:
        return fallback
    ext = name.rsplit(".", 1)[-1]
    if not ext or len(ext) > MAX_EXTENSION_LENGTH or not ext.isalnum():
        return fallback
    return ext.lower()


def asset_filename(hint: str, content_hash: str, ext: str) -> str:
    stem = _HINT_RE.sub("-", hint).strip("-") or "asset"
    return f"{stem}-{content_hash[:HASH_PREFIX_LENGTH]}.{ext}"


class AssetCache:
    def __init__(
        self,
        client: NotionClient,
        retry: RetryExecutor,
        asset_dir: Path,
        *,
        url_prefix: str = "./images",
        failures_dir: Path | None = None,
        dry_run: bool = False,
    ) -> None:
        self.client = client
        self.retry = retry
        self.asset_dir = asset_dir
        self.url_prefix = url_prefix.rstrip("/")
        self.failures_dir = failures_dir
        self.dry_run = dry_run
        self.stats = AssetStats()

    def disk_path(self, record: AssetRecord) -> Path:
        return self.asset_dir / PurePosixPath(record.local_path).name

    def cached_path(self, state: SyncState, key: str) -> str | None:
        """Previously recorded path for ``key`` if its file still exists."""
        record = state.assets.get(key)
        if record is None:
            return None
        if not self.disk_path(record).exists():
            logger.debug("Cached file for %s is gone: %s", key, record.local_path)
            return None
        return record.local_path

    async def resolve(self, state: SyncState, key: str, source_url: str | None, hint: str) -> str | None:
        """Local path for the asset slot ``key``, downloading only on a cache miss.

        Never raises; a failed download falls back to whatever was cached before.
        """
        cached = self.cached_path(state, key)
        if not source_url:
            return cached
        if cached is not None:
            self.stats.reused += 1
            return cached
        previous = state.assets.get(key)
        fallback = previous.local_path if previous else None
        if self.dry_run:
            logger.info("[DRY-RUN] would download %s", key)
            return fallback

        try:
            status, content = await self.retry.execute(
                lambda: self.client.download(source_url),
                label=f"download {key}",
            )
        except RetryError as exc:
            self._record_failure(source_url, key, str(exc.last_error))
            return fallback
        if not 200 <= status < 300:
            self._record_failure(source_url, key, f"status {status}")
            return fallback

        try:
            local_path = self._store(key, source_url, hint, content, state)
        except OSError as exc:
            self._record_failure(source_url, key, f"write failed: {exc}")
            return fallback
        self.stats.downloaded += 1
        return local_path

    def _store(self, key: str, source_url: str, hint: str, content: bytes, state: SyncState) -> str:
        content_hash = compute_sha256(content)
        name = asset_filename(hint, content_hash, safe_ext_from_url(source_url))
        target = self.asset_dir / name
        if target.exists():
            logger.debug("Asset %s already on disk as %s", key, name)
        else:
            write_bytes_atomic(target, content)
            logger.debug("Stored asset %s as %s (%d bytes)", key, name, len(content))
        local_path = f"{self.url_prefix}/{name}"
        state.assets[key] = AssetRecord(
            local_path=local_path,
            content_hash=content_hash,
            size_bytes=len(content),
            last_updated=utc_now_iso(),
            last_source_url=source_url,
        )
        return local_path

    def _record_failure(self, url: str, key: str, reason: str) -> None:
        self.stats.failed += 1
        logger.warning("Asset download failed for %s (%s): %s", key, reason, _redact(url))
        if self.failures_dir is not None and not self.dry_run:
            try:
                append_failure(self.failures_dir, url, key, reason)
            except OSError as exc:
                logger.debug("Could not record asset failure: %s", exc)


def _redact(url: str) -> str:
    # Signed URLs carry credentials in the query string.
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid url>"
    return f"{parts.scheme}://{parts.netloc}{parts.path}" if parts.netloc else url.split("?", 1)[0]


__all__ = [
    "AssetCache",
    "DEFAULT_EXTENSION",
    "asset_filename",
    "block_asset_key",
    "cover_asset_key",
    "property_asset_key",
    "safe_ext_from_url",
]
