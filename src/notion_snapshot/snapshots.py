from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from filelock import FileLock

from .filesystem import read_json, write_json_atomic

logger = logging.getLogger(__name__)


def page_snapshot_path(out_dir: Path, alias_or_id: str) -> Path:
    return out_dir / f"page-{alias_or_id}.json"


def db_snapshot_path(out_dir: Path, name: str) -> Path:
    return out_dir / f"db-{name}.json"


def snapshot_lock(lock_dir: Path, path: Path) -> FileLock:
    """Lock serializing read-merge-write cycles on one snapshot file.

    Lock files live in ``lock_dir`` so the snapshot directory only holds JSON.
    """
    lock_dir.mkdir(parents=True, exist_ok=True)
    return FileLock(str(lock_dir / f"{path.name}.lock"))


def read_collection(path: Path) -> list[dict[str, Any]]:
    """Rows of an existing collection snapshot; empty when absent."""
    if not path.exists():
        return []
    data = read_json(path)
    results = data.get("results") if isinstance(data, dict) else None
    if not isinstance(results, list):
        raise ValueError(f"{path} is not a collection snapshot")
    return [row for row in results if isinstance(row, dict) and row.get("id")]


def write_snapshot(path: Path, payload: dict[str, Any]) -> None:
    write_json_atomic(path, payload)
    logger.debug("Wrote snapshot %s", path)


__all__ = [
    "db_snapshot_path",
    "page_snapshot_path",
    "read_collection",
    "snapshot_lock",
    "write_snapshot",
]
