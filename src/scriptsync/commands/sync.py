"""
Sync commands for scriptsync.

Runs sync cycles against the configured feed, once or on a timer.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import asyncio
import logging
from typing import Optional

import typer

from scriptsync.config import ConfigError, SyncConfig, load_config
from scriptsync.event_client import EventClient
from scriptsync.feed import FeedScriptLoader

logger = logging.getLogger(__name__)


def _load_config_or_exit(ctx: typer.Context) -> SyncConfig:
    config_path = (ctx.obj or {}).get("config_path")
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ConfigError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if config.feed is None:
        typer.echo("Error: No feed configured (set 'feed' in the config file)", err=True)
        raise typer.Exit(1)
    return config


def build_loader(
    config: SyncConfig,
    clean: Optional[bool] = None,
    poll_interval_ms: Optional[int] = None,
) -> FeedScriptLoader:
    """Create a FeedScriptLoader from config, with optional overrides."""
    event_client = EventClient(config.events) if config.events else None
    return FeedScriptLoader(
        config.feed,
        config.script_dir,
        poll_interval_ms or config.poll_interval_ms,
        clean=config.clean if clean is None else clean,
        event_client=event_client,
    )


def check(
    ctx: typer.Context,
    clean: bool = typer.Option(
        False,
        "--clean",
        help="Wipe plugins and replay the feed from the epoch",
    ),
):
    """Run one sync cycle now and report what changed.

    Examples:
        scriptsync check
        scriptsync --config ./scriptsync.yaml check --clean
    """
    config = _load_config_or_exit(ctx)
    loader = build_loader(config, clean=clean or None)

    result = asyncio.run(loader.check_for_updates())
    if result is None:
        typer.echo(f"No script updates applied (anchor: {loader.anchor.isoformat()})")
        return

    typer.echo(f"Fetched {result.fetched} update(s); anchor: {result.anchor.isoformat()}")
    for label, keys in (
        ("Activated", result.activated),
        ("Removed", result.removed),
        ("Skipped", result.skipped),
        ("Failed", result.failed),
    ):
        if keys:
            typer.echo(f"  {label}: {', '.join(keys)}")

    if result.failed:
        raise typer.Exit(2)


async def _watch(loader: FeedScriptLoader) -> None:
    await loader.check_for_updates()
    async with loader:
        # Runs until interrupted
        await asyncio.Event().wait()


def watch(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(
        None,
        "--interval",
        "-i",
        help="Poll interval in milliseconds (overrides config)",
    ),
):
    """Poll the feed and hot-swap scripts until interrupted.

    Examples:
        scriptsync watch
        scriptsync watch --interval 1000
    """
    config = _load_config_or_exit(ctx)
    if interval is not None and interval <= 0:
        typer.echo("Error: --interval must be positive", err=True)
        raise typer.Exit(1)

    loader = build_loader(config, poll_interval_ms=interval)
    typer.echo(f"Watching {config.feed} every {loader.poll_interval_ms}ms (Ctrl-C to stop)")
    try:
        asyncio.run(_watch(loader))
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping watcher")
        typer.echo("Stopped.")
