"""Unified CLI entry point for CIC.

Config precedence: settings.default.toml -> settings.{env}.toml -> settings.local.toml -> env vars (CIC_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import typer

from cic.cli.capture import capture_app
from cic.cli.logging_setup import configure_logging
from cic.cli.settings_cmd import settings_app

try:
    from importlib.metadata import version

    VERSION = version("cic")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "cic — Content-aware Interaction & Capture. "
    "Finds a page's call-to-action, clicks it and records where it leads, with the IP and proxy used. "
    "Config precedence: settings.default.toml -> settings.{env}.toml -> settings.local.toml -> "
    "env vars (CIC_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(capture_app, name="capture")
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr."),
) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"cic {VERSION}")
        raise typer.Exit()
    configure_logging(verbose=verbose)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
