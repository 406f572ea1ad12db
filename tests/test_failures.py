from __future__ import annotations

import datetime as dt

from notion_snapshot.failures import append_failure, read_failures


def test_append_failure_writes_header_once(tmp_path) -> None:
    today = dt.date(2024, 1, 1)
    append_failure(tmp_path, "https://files.example/a.png", "block:b1:image", "status 403", date=today)
    append_failure(tmp_path, "https://files.example/b.pdf", "page:r1:prop:Files:0", "status 500", date=today)

    rows = read_failures(tmp_path, date=today)

    assert [(r.url, r.asset_key, r.reason) for r in rows] == [
        ("https://files.example/a.png", "block:b1:image", "status 403"),
        ("https://files.example/b.pdf", "page:r1:prop:Files:0", "status 500"),
    ]
    csv_text = (tmp_path / "failures" / "20240101" / "failed_assets.csv").read_text(encoding="utf-8")
    assert csv_text.count("url,asset_key,reason") == 1


def test_read_failures_for_quiet_day(tmp_path) -> None:
    assert read_failures(tmp_path, date=dt.date(2024, 1, 2)) == []
