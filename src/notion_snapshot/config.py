from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import os

import yaml
from dotenv import load_dotenv


# Flat id keys from older site configs, mapped to their alias / output name.
_LEGACY_PAGE_KEYS = {"intro_page_id": "introduction", "culture_page_id": "culture"}
_LEGACY_DB_KEYS = {"members_db_id": "members", "blog_db_id": "blog"}

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    pass


@dataclass(slots=True)
class Settings:
    """Runtime settings resolved from YAML + environment variables."""

    root: Path
    out_dir: Path
    asset_dir: Path
    state_file: Path
    asset_url_prefix: str
    pages: dict[str, str] = field(default_factory=dict)
    databases: dict[str, str] = field(default_factory=dict)
    max_attempts: int = 5
    backoff_base_ms: int = 250
    backoff_cap_ms: int = 2000
    rpm: int = 180
    timeout: float = 30.0
    max_depth: int = 256
    full_reconcile: bool = False
    fetch_blocks_for_db: bool = False
    token: str = ""
    log_level: str = "INFO"
    config_path: Path | None = None

    @property
    def cache_dir(self) -> Path:
        return self.state_file.parent

    def ensure_data_dirs(self) -> None:
        """Ensure directories backing snapshots, assets and state exist."""
        for directory in (self.out_dir, self.asset_dir, self.cache_dir):
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def has_token(self) -> bool:
        return bool(self.token)


def load_settings(path: str | os.PathLike[str] | None) -> Settings:
    """Load settings from YAML file and environment variables."""
    load_dotenv()
    cfg_path = Path(path).resolve() if path else None
    data: dict[str, object] = {}

    if cfg_path:
        with open(cfg_path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
            if not isinstance(raw, dict):
                raise ConfigError("Configuration file must contain a mapping at top level")
            data = raw

    root = (cfg_path.parent if cfg_path else Path.cwd()).resolve()
    notion = data.get("notion", {})
    paths = data.get("paths", {})
    net = data.get("network", {})
    sync = data.get("sync", {})

    out_dir = (root / _coerce_path(paths, "out_dir", "./notion-data")).resolve()
    asset_dir = (root / _coerce_path(paths, "asset_dir", "./images")).resolve()
    state_file = (root / _coerce_path(paths, "state_file", "./.cache/state.json")).resolve()
    asset_url_prefix = str(_coerce_value(paths, "asset_url_prefix", "./images"))

    pages = _coerce_mapping(notion, "pages")
    databases = _coerce_mapping(notion, "databases")
    if isinstance(notion, dict):
        for key, alias in _LEGACY_PAGE_KEYS.items():
            if key in notion:
                pages.setdefault(alias, str(notion[key] or ""))
        for key, name in _LEGACY_DB_KEYS.items():
            if key in notion:
                databases.setdefault(name, str(notion[key] or ""))

    # Config value wins over the environment.
    token = str(_coerce_value(notion, "token", "") or _coerce_value(notion, "notion_token", "")).strip()
    if not token:
        token = os.getenv("NOTION_TOKEN", "").strip()

    full_reconcile = _coerce_bool(_coerce_value(sync, "full_reconcile", False)) or _env_flag("FULL_RECONCILE")
    fetch_blocks_for_db = _coerce_bool(_coerce_value(sync, "fetch_blocks_for_db", False)) or _env_flag(
        "FETCH_BLOCKS_FOR_DB"
    )

    settings = Settings(
        root=root,
        out_dir=out_dir,
        asset_dir=asset_dir,
        state_file=state_file,
        asset_url_prefix=asset_url_prefix,
        pages=pages,
        databases=databases,
        max_attempts=int(_coerce_value(net, "max_attempts", 5)),
        backoff_base_ms=int(_coerce_value(net, "backoff_base_ms", 250)),
        backoff_cap_ms=int(_coerce_value(net, "backoff_cap_ms", 2000)),
        rpm=int(_coerce_value(net, "rpm", 180)),
        timeout=float(_coerce_value(net, "timeout", 30.0)),
        max_depth=int(_coerce_value(net, "max_depth", 256)),
        full_reconcile=full_reconcile,
        fetch_blocks_for_db=fetch_blocks_for_db,
        token=token,
        config_path=cfg_path,
    )
    return settings


def _coerce_path(section: object, key: str, default: str) -> Path:
    if isinstance(section, dict) and key in section and section[key]:
        return Path(str(section[key]))
    return Path(default)


def _coerce_mapping(section: object, key: str) -> dict[str, str]:
    if isinstance(section, dict) and isinstance(section.get(key), dict):
        return {str(name): str(value or "") for name, value in section[key].items()}
    return {}


def _coerce_value(section: object, key: str, default: object) -> object:
    if isinstance(section, dict) and key in section:
        value = section[key]
        if value is None:
            return default
        return value
    return default


def _coerce_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE_VALUES


__all__ = ["ConfigError", "Settings", "load_settings"]
