from __future__ import annotations

import logging
from typing import Any

from .assets import AssetCache, block_asset_key
from .blocks import asset_source
from .models import SyncState
from .notion_client import NotionClient
from .retry import RetryExecutor

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256


class DepthLimitError(Exception):
    pass


class BlockTreeFetcher:
    """Fetches a block's full child tree, caching embedded images and files.

    Sibling order is preserved exactly as the API returns it. Any request that
    still fails after retrying propagates, so a resource is either fetched whole
    or not at all.
    """

    def __init__(
        self,
        client: NotionClient,
        retry: RetryExecutor,
        assets: AssetCache,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.client = client
        self.retry = retry
        self.assets = assets
        self.max_depth = max_depth

    async def fetch_tree(self, state: SyncState, block_id: str, *, depth: int = 0) -> list[dict[str, Any]]:
        if depth > self.max_depth:
            raise DepthLimitError(f"block {block_id} nested deeper than {self.max_depth} levels")
        blocks = await self.list_all_children(block_id)
        for block in blocks:
            if block.get("has_children"):
                block["children"] = await self.fetch_tree(state, block["id"], depth=depth + 1)
            await self._cache_block_asset(state, block)
        return blocks

    async def list_all_children(self, block_id: str) -> list[dict[str, Any]]:
        blocks: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            page = await self.retry.execute(
                lambda: self.client.list_children(block_id, cursor),
                label=f"blocks.children.list {block_id}",
            )
            blocks.extend(page.get("results") or [])
            cursor = page.get("next_cursor")
            if not page.get("has_more") or not cursor:
                break
        return blocks

    async def _cache_block_asset(self, state: SyncState, block: dict[str, Any]) -> None:
        source = asset_source(block)
        if source is None:
            return
        slot, url = source
        local = await self.assets.resolve(state, block_asset_key(block["id"], slot), url, slot)
        if local:
            block[slot]["local"] = local


__all__ = ["BlockTreeFetcher", "DEFAULT_MAX_DEPTH", "DepthLimitError"]
