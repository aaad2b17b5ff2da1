"""CLI entry point for patchwise.

Commands:
  review   pack a pull request's diff, review it with Claude or GPT-4o and post the result
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from patchwise_cli.commands.review import review_cmd

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("patchwise"),
    prog_name="patchwise",
)
@click.option(
    "--config",
    "config_path",
    default=".patchwise.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PATCHWISE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log packing, strategy and fix decisions.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI-powered GitHub PR code reviewer that fits large diffs into model context."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)
