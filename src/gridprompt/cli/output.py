"""Output formatting for CLI commands."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from gridprompt.models import RunResult


def print_json(data: Any) -> None:
    """Print JSON output for scripts."""
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def print_run_summary(console: Console, result: RunResult, export: dict[str, Any]) -> None:
    """Print a run summary table followed by the first few errors."""
    table = Table(show_header=False, box=None)
    table.add_column(style="dim")
    table.add_column()
    table.add_row("State", result.state.value)
    table.add_row("Succeeded", f"[green]{result.success_count}[/green]")
    table.add_row("Failed", f"[red]{result.error_count}[/red]" if result.error_count else "0")
    if result.skipped_count:
        table.add_row("Skipped", f"[yellow]{result.skipped_count}[/yellow]")
    table.add_row("Duration", f"{result.duration_ms / 1000:.1f}s")
    table.add_row("Results", f"{export['success_path']} ({export['success_rows']} rows)")
    if export["error_path"]:
        table.add_row("Errors", f"{export['error_path']} ({export['error_rows']} rows)")
    console.print(table)

    for error in sorted(result.errors, key=lambda e: e.index)[:5]:
        console.print(f"  [red]✗[/red] row {error.index}: {error.message}")
    if result.error_count > 5:
        console.print(f"  ... and {result.error_count - 5} more")
