"""TradeStats command line."""

import os
from typing import Optional

import click

from tradestats import __version__
from tradestats.cli.commands import analyze_command
from tradestats.system.config import CONFIG_PATH_ENV


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, prog_name="tradestats")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help=f"System config YAML (default: ${CONFIG_PATH_ENV} or config/tradestats.yaml)",
)
def main(config_path: Optional[str]):
    """TradeStats - performance analytics for closed trades."""
    if config_path:
        os.environ[CONFIG_PATH_ENV] = config_path


main.add_command(analyze_command)


if __name__ == "__main__":
    main()
