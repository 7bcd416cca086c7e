"""gridprompt run - process a CSV file row by row through Gemini."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from gridprompt.cli.output import print_json, print_run_summary
from gridprompt.client import GeminiClient
from gridprompt.config import (
    GridPromptConfig,
    apply_overrides,
    get_api_key,
    get_config_or_default,
)
from gridprompt.errors import GridPromptError, JobValidationError
from gridprompt.export import export_results, read_csv_rows, union_columns
from gridprompt.models import (
    ActiveRequestsEvent,
    Event,
    JobInput,
    OutputColumn,
    ProgressEvent,
    RunResult,
)
from gridprompt.prompt import missing_variables
from gridprompt.scheduler import BatchScheduler

logger = logging.getLogger(__name__)


def load_columns(path: Path | None) -> list[OutputColumn]:
    """Load output columns from a JSON file holding a list of column objects."""
    if path is None:
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise JobValidationError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise JobValidationError(f"{path} must contain a JSON list of columns")
    try:
        return [OutputColumn.model_validate(item) for item in data]
    except ValidationError as e:
        raise JobValidationError(f"invalid column definition in {path}: {e}") from e


async def run_job(
    job: JobInput,
    config: GridPromptConfig,
    api_key: str,
    console: Console,
    show_progress: bool = True,
) -> RunResult:
    """Run a job against Gemini, showing a progress bar. Ctrl-C aborts."""
    async with GeminiClient(
        api_key=api_key,
        model=config.MODEL,
        enable_web_search=config.ENABLE_WEB_SEARCH,
    ) as client:
        scheduler = BatchScheduler(client)

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, scheduler.abort)
            handles_sigint = True
        except (NotImplementedError, RuntimeError):
            logger.debug("SIGINT handler not supported on this platform")
            handles_sigint = False

        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
                disable=not show_progress,
            ) as progress:
                task = progress.add_task("Processing rows...", total=len(job.rows))

                def on_event(event: Event) -> None:
                    if isinstance(event, ProgressEvent):
                        progress.update(task, completed=event.completed)
                    elif isinstance(event, ActiveRequestsEvent):
                        progress.update(
                            task, description=f"Processing rows ({event.count} in flight)..."
                        )

                return await scheduler.start(job, on_event=on_event)
        finally:
            if handles_sigint:
                loop.remove_signal_handler(signal.SIGINT)


@click.command()
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--template",
    "-t",
    "template_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Prompt template file with {{column}} placeholders",
)
@click.option(
    "--columns",
    "-c",
    "columns_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file describing the expected output columns",
)
@click.option("--concurrency", type=int, default=None, help="Maximum simultaneous requests")
@click.option("--rate-limit", type=int, default=None, help="Maximum requests per minute")
@click.option("--timeout", type=int, default=None, help="Per-request timeout in seconds")
@click.option("--model", default=None, help="Gemini model name")
@click.option(
    "--web-search/--no-web-search",
    default=None,
    help="Ground requests with Google Search",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for result CSV files",
)
@click.option("--name", "basename", default=None, help="Base name for result files")
@click.option("--json", "json_output", is_flag=True, help="Print the run summary as JSON")
def run(
    csv_file: Path,
    template_file: Path,
    columns_file: Path | None,
    concurrency: int | None,
    rate_limit: int | None,
    timeout: int | None,
    model: str | None,
    web_search: bool | None,
    output_dir: Path | None,
    basename: str | None,
    json_output: bool,
):
    """
    Send one prompt per CSV row and export the structured answers.

    Writes <name>.csv with the parsed results and <name>-errors.csv with
    the rows that failed.

    \b
    Example:
      gridprompt run companies.csv -t prompt.txt -c columns.json --concurrency 5
    """
    console = Console(stderr=json_output)

    try:
        config = get_config_or_default()
        overrides: dict[str, Any] = {
            "MODEL": model,
            "CONCURRENCY": concurrency,
            "RATE_LIMIT": rate_limit,
            "TIMEOUT": timeout,
            "ENABLE_WEB_SEARCH": web_search,
            "OUTPUT_FOLDER": str(output_dir) if output_dir else None,
        }
        config = apply_overrides(config, overrides)

        rows = read_csv_rows(csv_file)
        template = template_file.read_text(encoding="utf-8")
        columns = load_columns(columns_file)

        try:
            job = JobInput(
                rows=rows,
                prompt_template=template,
                output_columns=columns,
                concurrency=config.CONCURRENCY,
                rate_limit_per_minute=config.RATE_LIMIT,
                timeout_ms=config.timeout_ms,
            )
        except ValidationError as e:
            raise JobValidationError(str(e)) from e

        unknown = missing_variables(template, union_columns(rows))
        if unknown:
            console.print(
                f"[yellow]Warning:[/yellow] template placeholders not in CSV header: "
                f"{', '.join(unknown)}"
            )

        api_key = get_api_key(config)

        if not json_output:
            console.print(
                f"[cyan]Processing {len(rows)} rows[/cyan] "
                f"[dim](model={config.MODEL}, concurrency={config.CONCURRENCY}, "
                f"rate_limit={config.RATE_LIMIT}/min)[/dim]"
            )

        result = asyncio.run(
            run_job(job, config, api_key, console, show_progress=not json_output)
        )
        export = export_results(result.success, result.errors, config.OUTPUT_FOLDER, basename)
    except GridPromptError as e:
        raise click.ClickException(e.message) from e

    if json_output:
        summary = result.to_dict()
        summary["export"] = export
        print_json(summary)
    else:
        print_run_summary(console, result, export)
