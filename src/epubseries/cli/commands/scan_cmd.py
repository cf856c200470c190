# ABOUTME: The `epubseries scan` command for listing series metadata in a directory.
# ABOUTME: Reads every EPUB found and shows title, author, series, index, and source.

import json as json_lib
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from epubseries.cli.options import recursive_option
from epubseries.core.scanner import scan as scan_books
from epubseries.metadata.types import BookRecord, SeriesSource

console = Console()

_SOURCE_LABELS = {
    SeriesSource.EPUB3: "[green]EPUB3[/green]",
    SeriesSource.CALIBRE: "[yellow]calibre[/yellow]",
    SeriesSource.NONE: "[dim]-[/dim]",
}


@click.command("scan")
@click.argument(
    "directory",
    type=click.Path(exists=True, path_type=Path),
)
@recursive_option
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    default=False,
    help="Output records as JSON.",
)
@click.option(
    "-w", "--workers",
    type=click.IntRange(min=1),
    default=1,
    envvar="EPUBSERIES_WORKERS",
    show_default=True,
    help="Number of files read in parallel.",
)
def scan(directory: Path, recursive: bool, json_output: bool, workers: int) -> None:
    """Show the series metadata of every EPUB in DIRECTORY."""
    records = scan_books(directory, recursive, workers=workers)

    if json_output:
        click.echo(json_lib.dumps([record.to_dict() for record in records], indent=2))
        return

    if not records:
        console.print(f"[yellow]No EPUB files found in {directory}[/yellow]")
        return

    _print_table(records)


def _print_table(records: list[BookRecord]) -> None:
    table = Table(title=f"{len(records)} EPUB file(s)")
    table.add_column("File", style="bold")
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("Series")
    table.add_column("#", justify="right")
    table.add_column("Source")

    for record in records:
        table.add_row(
            record.file_name,
            record.title,
            record.author,
            record.series or "[dim]none[/dim]",
            record.series_index,
            _SOURCE_LABELS[record.series_source],
        )

    console.print(table)

    unreadable = [record for record in records if record.error]
    if unreadable:
        console.print(f"\n[yellow]{len(unreadable)} file(s) could not be read:[/yellow]")
        for record in unreadable:
            console.print(f"  [dim]{record.file_name}:[/dim] {record.error}")
