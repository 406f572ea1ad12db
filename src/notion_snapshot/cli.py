from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

import typer

from .config import ConfigError, Settings, load_settings
from .failures import read_failures
from .ids import normalize_id
from .logging_setup import setup_logging
from .sync import SyncService

logger = logging.getLogger(__name__)

app = typer.Typer(help="Notion → local JSON/asset snapshot sync")
auth_app = typer.Typer(help="Authentication helpers")
app.add_typer(auth_app, name="auth")


@dataclass(slots=True)
class AppState:
    settings: Settings


def _resolve_config_path(config: Path | None) -> Path | None:
    if config:
        return config
    env_value = os.getenv("NOTION_SNAPSHOT_CONFIG")
    if env_value:
        return Path(env_value)
    default = Path.cwd() / "site.config.yaml"
    return default if default.exists() else None


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(None, "--config", exists=True, help="Path to site.config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    cfg_path = _resolve_config_path(config)
    try:
        settings = load_settings(cfg_path)
    except ConfigError as exc:
        typer.secho(f"Invalid config: {exc}", fg="red", err=True)
        raise typer.Exit(code=2) from None
    if verbose:
        settings.log_level = "DEBUG"
    setup_logging(settings.log_level)
    ctx.obj = AppState(settings=settings)
    typer.secho(f"Config: {settings.config_path or 'defaults'}, out_dir={settings.out_dir}", fg="cyan", err=True)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise typer.BadParameter("application state missing")
    return state


def _require_token(settings: Settings) -> None:
    if not settings.has_token:
        typer.secho(
            "Notion token not found. Set notion.token in the config file or the NOTION_TOKEN env var.",
            fg="red",
            err=True,
        )
        raise typer.Exit(code=1)


@auth_app.command("check")
def auth_check(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    _require_token(state.settings)

    async def _run() -> bool:
        service = SyncService(state.settings)
        try:
            return await service.auth_check()
        finally:
            await service.close()

    if asyncio.run(_run()):
        typer.secho("Auth OK", fg="green")
    else:
        typer.secho("Auth failed", fg="red", err=True)
        raise typer.Exit(code=1)


@app.command()
def sync(
    ctx: typer.Context,
    full: bool = typer.Option(False, "--full", help="Re-fetch every row and drop rows deleted upstream"),
    fetch_blocks_for_db: bool = typer.Option(
        False,
        "--fetch-blocks-for-db",
        help="Also fetch the block tree of every database row (slow)",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Fetch and report without writing anything"),
) -> None:
    state = _get_state(ctx)
    settings = state.settings
    _require_token(settings)
    settings.ensure_data_dirs()
    if dry_run:
        typer.secho("Running in dry-run mode", fg="yellow", err=True)

    async def _run() -> dict[str, int]:
        service = SyncService(settings, dry_run=dry_run)
        try:
            stats = await service.run(
                full=full or settings.full_reconcile,
                fetch_blocks_for_db=fetch_blocks_for_db or settings.fetch_blocks_for_db,
            )
            return stats.summary()
        finally:
            await service.close()

    try:
        summary = asyncio.run(_run())
    except Exception as exc:  # noqa: BLE001
        logger.exception("Sync failed; state left as of the previous run: %s", exc)
        raise typer.Exit(code=1) from None
    typer.echo(summary)


@app.command()
def normalize(value: str = typer.Argument(..., help="Raw id, dashed id or Notion URL")) -> None:
    canonical = normalize_id(value)
    if canonical is None:
        typer.secho(f"Not a Notion id: {value}", fg="red", err=True)
        raise typer.Exit(code=2)
    typer.echo(canonical)


@app.command()
def failures(
    ctx: typer.Context,
    date_option: str | None = typer.Option(None, "--date", help="Show asset failures from this date (YYYY-MM-DD)"),
) -> None:
    state = _get_state(ctx)
    if date_option:
        try:
            target_date = datetime.strptime(date_option, "%Y-%m-%d").date()
        except ValueError:
            typer.secho("--date must be in YYYY-MM-DD format", fg="red", err=True)
            raise typer.Exit(code=2) from None
    else:
        target_date = date.today()

    rows = read_failures(state.settings.cache_dir, date=target_date)
    if not rows:
        typer.echo(f"No asset failures for {target_date.isoformat()}")
        return
    for row in rows:
        typer.echo(f"{row.asset_key}\t{row.reason}\t{row.url}")


__all__ = ["app"]
