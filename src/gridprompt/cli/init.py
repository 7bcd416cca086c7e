"""gridprompt init - write a default configuration file."""

from __future__ import annotations

import click
from pydantic import ValidationError
from rich.console import Console

from gridprompt.config import config_file_exists, create_config, get_config_file_path

console = Console()


@click.command()
@click.option("--concurrency", type=int, default=None, help="Maximum simultaneous requests")
@click.option("--rate-limit", type=int, default=None, help="Maximum requests per minute")
@click.option("--model", default=None, help="Gemini model name")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file")
def init(concurrency: int | None, rate_limit: int | None, model: str | None, force: bool):
    """Create gridprompt.config in the current directory."""
    if config_file_exists() and not force:
        console.print(
            f"[yellow]Configuration already exists:[/yellow] {get_config_file_path()}\n"
            "Use --force to overwrite."
        )
        return

    overrides = {"CONCURRENCY": concurrency, "RATE_LIMIT": rate_limit, "MODEL": model}
    try:
        config = create_config(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[green]✓[/green] Created {get_config_file_path()}")
    console.print(f"  Model: {config.MODEL}")
    console.print(f"  Concurrency: {config.CONCURRENCY}")
    console.print(f"  Rate limit: {config.RATE_LIMIT}/min")
    console.print(f"  API key variable: {config.API_KEY_ENV}")
