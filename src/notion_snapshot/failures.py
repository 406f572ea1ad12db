from __future__ import annotations

import csv
import datetime as dt
from dataclasses import dataclass
from pathlib import Path

from filelock import FileLock

_HEADER = ["url", "asset_key", "reason"]


@dataclass(slots=True)
class AssetFailure:
    url: str
    asset_key: str
    reason: str


def failure_csv_path(cache_dir: Path, *, date: dt.date | None = None) -> Path:
    date = date or dt.datetime.now().date()
    day_str = date.strftime("%Y%m%d")
    path = cache_dir / "failures" / day_str / "failed_assets.csv"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def append_failure(cache_dir: Path, url: str, asset_key: str, reason: str, *, date: dt.date | None = None) -> None:
    csv_path = failure_csv_path(cache_dir, date=date)
    lock = FileLock(str(csv_path) + ".lock")
    with lock:
        is_new = not csv_path.exists()
        with open(csv_path, "a", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            if is_new:
                writer.writerow(_HEADER)
            writer.writerow([url, asset_key, reason])


def read_failures(cache_dir: Path, *, date: dt.date) -> list[AssetFailure]:
    csv_path = failure_csv_path(cache_dir, date=date)
    if not csv_path.exists():
        return []
    rows: list[AssetFailure] = []
    with open(csv_path, "r", encoding="utf-8") as fh:
        reader = csv.DictReader(fh)
        for row in reader:
            url = row.get("url")
            key = row.get("asset_key")
            if url and key:
                rows.append(AssetFailure(url=url, asset_key=key, reason=row.get("reason") or ""))
    return rows


__all__ = ["AssetFailure", "append_failure", "failure_csv_path", "read_failures"]
