# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Config command for scriptsync.

Provides basic configuration validation.
"""

import typer

from scriptsync.config import ConfigError, load_config

app = typer.Typer(help="Manage and validate configuration")


@app.command()
def validate(ctx: typer.Context):
    """
    Validate configuration file.

    Checks that the config file is valid YAML with valid values.
    """
    typer.echo("Validating configuration...")
    typer.echo()

    config_path = (ctx.obj or {}).get("config_path")
    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except ConfigError as e:
        typer.echo(f"Validation failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("Configuration structure is valid")
    typer.echo()
    typer.echo(f"Config file: {config.source or '(defaults)'}")
    typer.echo(f"Script dir: {config.script_dir}")
    typer.echo(f"Poll interval: {config.poll_interval_ms}ms")
    typer.echo(f"Feed: {config.feed or '(not set)'}")
    if config.events:
        typer.echo(f"Events: {config.events}")
    if config.feed and not config.feed.exists():
        typer.echo(f"Warning: feed file does not exist yet: {config.feed}")
    typer.echo()
    typer.echo("Configuration validation complete!")
