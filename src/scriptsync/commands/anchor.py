"""
Anchor commands for scriptsync.

Shows or resets the persisted sync anchor.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import typer

from scriptsync.config import ConfigError, SyncConfig, load_config
from scriptsync.loader import ANCHOR_FILENAME, EPOCH, AnchorStore, to_millis

app = typer.Typer(help="Inspect or reset the sync anchor")


def _load_config_or_exit(ctx: typer.Context) -> SyncConfig:
    config_path = (ctx.obj or {}).get("config_path")
    try:
        return load_config(config_path)
    except (FileNotFoundError, ConfigError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("show")
def show_command(ctx: typer.Context):
    """Show the persisted anchor.

    Examples:
        scriptsync anchor show
    """
    config = _load_config_or_exit(ctx)
    store = AnchorStore(config.script_dir / ANCHOR_FILENAME)
    anchor = store.load()

    typer.echo(f"Anchor file: {store.path}")
    if anchor == EPOCH:
        typer.echo("Anchor: epoch (nothing processed yet)")
    else:
        typer.echo(f"Anchor: {anchor.isoformat()} ({to_millis(anchor)})")


@app.command("reset")
def reset_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete the persisted anchor so the next run replays the whole feed.

    Examples:
        scriptsync anchor reset --yes
    """
    config = _load_config_or_exit(ctx)
    store = AnchorStore(config.script_dir / ANCHOR_FILENAME)

    if not store.path.exists():
        typer.echo("No anchor file; already at epoch.")
        return

    if not yes and not typer.confirm(f"Reset anchor at {store.path}?"):
        typer.echo("Aborted.")
        raise typer.Exit(1)

    try:
        store.path.unlink()
    except OSError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo("Anchor reset to epoch.")
