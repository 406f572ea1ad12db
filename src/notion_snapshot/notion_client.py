from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import httpx
from aiolimiter import AsyncLimiter

logger = logging.getLogger(__name__)

API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
PAGE_SIZE = 100


class NotionError(Exception):
    def __init__(self, status_code: int, message: str, *, code: str | None = None) -> None:
        super().__init__(f"{status_code} {code or 'error'}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class NotionClient:
    """Async Notion API client with request pacing.

    Each method performs exactly one HTTP call; retrying is the caller's job.
    Asset downloads go through a second client that never carries the token.
    """

    def __init__(
        self,
        token: str,
        *,
        rpm: int = 180,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        download_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise NotionError(401, "NOTION_TOKEN is required", code="unauthorized")
        headers = {
            "Authorization": f"Bearer {token}",
            "Notion-Version": NOTION_VERSION,
        }
        http_timeout = httpx.Timeout(timeout, connect=min(timeout, 10.0))
        self._client = httpx.AsyncClient(
            base_url=API_URL,
            headers=headers,
            timeout=http_timeout,
            transport=transport,
        )
        self._download_client = httpx.AsyncClient(
            timeout=http_timeout,
            follow_redirects=True,
            transport=download_transport,
        )
        self._limiter = AsyncLimiter(max(1, rpm), time_period=60)

    async def close(self) -> None:
        await self._client.aclose()
        await self._download_client.aclose()

    async def auth_check(self) -> bool:
        response = await self._client.get("/users/me")
        logger.debug("Auth check status %s", response.status_code)
        return response.status_code == 200

    async def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/pages/{page_id}")

    async def list_children(self, block_id: str, cursor: str | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"page_size": PAGE_SIZE}
        if cursor:
            params["start_cursor"] = cursor
        return await self._request("GET", f"/blocks/{block_id}/children", params=params)

    async def query_database(
        self,
        database_id: str,
        cursor: str | None = None,
        filter: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"page_size": PAGE_SIZE}
        if cursor:
            body["start_cursor"] = cursor
        if filter:
            body["filter"] = filter
        return await self._request("POST", f"/databases/{database_id}/query", json=body)

    async def download(self, url: str) -> tuple[int, bytes]:
        response = await self._download_client.get(url)
        return response.status_code, response.content

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        async with self._limiter:
            response = await self._client.request(method, path, **kwargs)
        if response.status_code == 429:
            await self._respect_retry_after(response)
        if response.is_success:
            return response.json()
        raise _error_from(response)

    async def _respect_retry_after(self, response: httpx.Response) -> None:
        retry_after = response.headers.get("Retry-After")
        delay = 1.0
        if retry_after:
            try:
                delay = max(1.0, float(retry_after))
            except ValueError:
                delay = 1.0
        logger.warning("Rate limited by Notion, sleeping for %.1fs", delay)
        await asyncio.sleep(delay)


def _error_from(response: httpx.Response) -> NotionError:
    code = None
    message = response.reason_phrase or "request failed"
    data = None
    if response.content:
        with contextlib.suppress(ValueError):
            data = response.json()
    if isinstance(data, dict):
        code = data.get("code") or None
        message = str(data.get("message") or message)
    return NotionError(response.status_code, message, code=code)


__all__ = ["API_URL", "NOTION_VERSION", "NotionClient", "NotionError", "PAGE_SIZE"]
