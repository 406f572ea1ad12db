from __future__ import annotations

import contextlib
import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any


def compute_sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _default_file_mode() -> int:
    # mkstemp creates 0600 files; published snapshots and assets follow the umask.
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_bytes_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` next to ``path`` and move it into place in one step."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.chmod(tmp_name, _default_file_mode())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def write_json_atomic(path: Path, payload: Any) -> None:
    data = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
    write_bytes_atomic(path, data)


def read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


__all__ = ["compute_sha256", "read_json", "write_bytes_atomic", "write_json_atomic"]
