# ABOUTME: CLI package for epubseries, built on Click.
# ABOUTME: Defines the root command group, configures logging, and registers subcommands.

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from epubseries.cli.commands import inspect_cmd, scan_cmd, set_cmd


@click.group()
@click.version_option(package_name="epubseries")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """epubseries - edit series metadata inside EPUB files."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


cli.add_command(scan_cmd.scan)
cli.add_command(inspect_cmd.inspect)
cli.add_command(set_cmd.set_series)
cli.add_command(set_cmd.clear_series)
