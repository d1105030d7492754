"""Start command."""

import asyncio
import logging

import click
from rich.console import Console

from . import cli

console = Console()


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start the Moments bot (Telegram polling)."""
    from moments.config import ConfigError, load_settings
    from moments.main import run, setup_logging

    try:
        settings = load_settings()
    except ConfigError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise SystemExit(1)

    setup_logging(settings.log_file)
    if debug:
        logging.getLogger("moments").setLevel(logging.DEBUG)

    console.print("[bold blue]Starting Moments...[/bold blue]")
    console.print(f"   Repository: {settings.github_owner}/{settings.github_repo} ({settings.github_branch})")
    console.print(f"   Timezone:   {settings.timezone}")
    console.print("   Mode:       Telegram polling (private, DM only)")
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
