# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Main CLI entry point for scriptsync.

Thin trigger: parses args, loads config, hands off to the loader.
"""

import logging
from typing import Optional

import typer

from scriptsync import __version__

app = typer.Typer(
    name="scriptsync",
    help="Hot-swap scripts from a feed without restarting",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Hot-swap scripts from a feed without restarting."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config_path": config_path, "verbose": verbose}


@app.command()
def version():
    """Show version information."""
    typer.echo(f"scriptsync version {__version__}")


# Static commands (sync, anchor, config)
from scriptsync.commands import anchor, config, sync

app.command("check")(sync.check)
app.command("watch")(sync.watch)
app.add_typer(anchor.app, name="anchor")
app.add_typer(config.app, name="config")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
