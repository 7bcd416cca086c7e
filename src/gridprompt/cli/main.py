"""gridprompt CLI - main command-line interface.

Commands:
- init: Write a gridprompt.config file
- run: Process a CSV file through Gemini and export results
- schema: Preview the output schema block
- infer-columns: Derive output columns from a sample response
"""

import logging

import click
from dotenv import load_dotenv

from gridprompt.config import LOG_LEVELS, get_config_or_default
from gridprompt.errors import ConfigError

load_dotenv()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level_name: str | None) -> None:
    """Configure root logging from a config level name (error/warn/info/debug)."""
    if level_name is None:
        try:
            level = get_config_or_default().logging_level
        except (ConfigError, FileNotFoundError):
            level = logging.INFO
    else:
        level = LOG_LEVELS[level_name]
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # Per-request lines from httpx drown out progress output
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(list(LOG_LEVELS)),
    default=None,
    help="Override LOG_LEVEL from gridprompt.config",
)
@click.version_option(package_name="gridprompt", prog_name="gridprompt")
@click.pass_context
def main(ctx, log_level: str | None):
    """
    gridprompt - run a prompt over every row of a table.

    \b
    Typical flow:
      gridprompt init
      gridprompt infer-columns sample.json > columns.json
      gridprompt schema columns.json
      gridprompt run data.csv -t prompt.txt -c columns.json
    """
    ctx.ensure_object(dict)
    configure_logging(log_level)


from gridprompt.cli.init import init  # noqa: E402
from gridprompt.cli.run import run  # noqa: E402
from gridprompt.cli.schema import infer_columns_cmd, schema  # noqa: E402

main.add_command(init)
main.add_command(run)
main.add_command(schema)
main.add_command(infer_columns_cmd, name="infer-columns")


if __name__ == "__main__":
    main()
