from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from notion_snapshot.config import Settings
from notion_snapshot.notion_client import NotionClient
from notion_snapshot.retry import RetryExecutor
from notion_snapshot.state import parse_iso


class FakeNotion:
    """In-memory stand-in for the Notion REST API and the asset host."""

    def __init__(self) -> None:
        self.pages: dict[str, dict[str, Any]] = {}
        self.children: dict[str, list[dict[str, Any]]] = {}
        self.databases: dict[str, list[dict[str, Any]]] = {}
        self.assets: dict[str, bytes | int | Exception] = {}
        self.page_size = 100
        self.failures: dict[str, int] = {}
        self.requests: list[tuple[str, str]] = []
        self.queries: list[dict[str, Any]] = []
        self.downloads: list[str] = []

    # -- builders -------------------------------------------------------
    def add_page(self, page_id: str, edited: str, *, cover_url: str | None = None) -> dict[str, Any]:
        page = {"object": "page", "id": page_id, "last_edited_time": edited, "cover": None, "properties": {}}
        if cover_url:
            page["cover"] = {"type": "file", "file": {"url": cover_url}}
        self.pages[page_id] = page
        self.children.setdefault(page_id, [])
        return page

    def add_row(self, database_id: str, row_id: str, edited: str, **properties: Any) -> dict[str, Any]:
        row = {"object": "page", "id": row_id, "last_edited_time": edited, "cover": None, "properties": properties}
        self.databases.setdefault(database_id, []).append(row)
        return row

    def remove_row(self, database_id: str, row_id: str) -> None:
        self.databases[database_id] = [r for r in self.databases[database_id] if r["id"] != row_id]

    def count(self, kind: str) -> int:
        return sum(1 for method, path in self.requests if kind in path)

    # -- transports -----------------------------------------------------
    def api_handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1")
        self.requests.append((request.method, path))
        remaining = self.failures.get(path, 0)
        if remaining:
            self.failures[path] = remaining - 1
            return httpx.Response(502, json={"object": "error", "code": "bad_gateway", "message": "flaky"})

        parts = path.strip("/").split("/")
        if parts[0] == "pages" and request.method == "GET":
            page = self.pages.get(parts[1])
            if page is None:
                return httpx.Response(404, json={"object": "error", "code": "object_not_found", "message": "nope"})
            return httpx.Response(200, json=page)
        if parts[0] == "blocks" and parts[2] == "children":
            items = self.children.get(parts[1], [])
            cursor = request.url.params.get("start_cursor")
            return httpx.Response(200, json=self._paginate(items, cursor))
        if parts[0] == "databases" and parts[2] == "query":
            body = json.loads(request.content or b"{}")
            self.queries.append(body)
            rows = self.databases.get(parts[1], [])
            flt = body.get("filter")
            if flt:
                since = parse_iso(flt["last_edited_time"]["on_or_after"])
                rows = [r for r in rows if parse_iso(r["last_edited_time"]) >= since]
            return httpx.Response(200, json=self._paginate(rows, body.get("start_cursor")))
        if parts[0] == "users":
            return httpx.Response(200, json={"object": "user"})
        return httpx.Response(400, json={"object": "error", "code": "invalid_request", "message": path})

    def asset_handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.downloads.append(url)
        body = self.assets.get(url.split("?", 1)[0])
        if body is None:
            return httpx.Response(404)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, content=body)

    def _paginate(self, items: list[dict[str, Any]], cursor: str | None) -> dict[str, Any]:
        start = int(cursor or 0)
        end = start + self.page_size
        chunk = items[start:end]
        has_more = end < len(items)
        return {"object": "list", "results": chunk, "has_more": has_more, "next_cursor": str(end) if has_more else None}


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_notion() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def retry(sleeps: SleepRecorder) -> RetryExecutor:
    return RetryExecutor(max_attempts=3, sleep=sleeps)


@pytest.fixture
def client(fake_notion: FakeNotion) -> NotionClient:
    return NotionClient(
        "secret-token",
        rpm=100_000,
        transport=httpx.MockTransport(fake_notion.api_handler),
        download_transport=httpx.MockTransport(fake_notion.asset_handler),
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    settings = Settings(
        root=tmp_path,
        out_dir=tmp_path / "notion-data",
        asset_dir=tmp_path / "images",
        state_file=tmp_path / ".cache" / "state.json",
        asset_url_prefix="./images",
        token="secret-token",
    )
    settings.ensure_data_dirs()
    return settings
