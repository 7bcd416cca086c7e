"""gridprompt schema / infer-columns - inspect output column definitions."""

from __future__ import annotations

import json
from pathlib import Path

import click

from gridprompt.cli.output import print_json
from gridprompt.cli.run import load_columns
from gridprompt.errors import GridPromptError
from gridprompt.prompt import render_prompt
from gridprompt.schema import compile_schema, infer_columns, schema_block


@click.command()
@click.argument("columns_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--template",
    "-t",
    "template_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Show the full prompt for this template instead of the schema block alone",
)
def schema(columns_file: Path, template_file: Path | None):
    """Preview the schema block appended to every prompt."""
    try:
        columns = load_columns(columns_file)
    except GridPromptError as e:
        raise click.ClickException(e.message) from e

    if not columns:
        click.echo("No output columns defined.")
        return

    if template_file is not None:
        template = template_file.read_text(encoding="utf-8")
        click.echo(render_prompt(template, {}, compile_schema(columns)))
    else:
        click.echo(schema_block(columns))


@click.command("infer-columns")
@click.argument("sample_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def infer_columns_cmd(sample_file: Path):
    """Infer output columns from a sample JSON response."""
    try:
        sample = json.loads(sample_file.read_text(encoding="utf-8"))
    except ValueError as e:
        raise click.ClickException(f"{sample_file} is not valid JSON: {e}") from e
    print_json([col.to_dict() for col in infer_columns(sample)])
