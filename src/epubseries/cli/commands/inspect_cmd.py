# ABOUTME: The `epubseries inspect` command for viewing one EPUB's series metadata.
# ABOUTME: Shows the extracted record, which convention supplied it, and the OPF path.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from epubseries.formats.archive import Archive
from epubseries.formats.container import rootfile_paths
from epubseries.formats.errors import EpubSeriesError
from epubseries.formats.opf import read_book

console = Console()


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def inspect(path: Path) -> None:
    """Show series metadata extracted from an EPUB file."""
    try:
        record = read_book(path)
        with Archive.open(path) as archive:
            rootfiles = rootfile_paths(archive)
    except EpubSeriesError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    table = Table(title=record.file_name, show_header=False, pad_edge=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Title", record.title)
    table.add_row("Author", record.author or "[dim]unknown[/dim]")
    table.add_row("Series", record.series or "[dim]none[/dim]")
    table.add_row("Series Index", record.series_index or "[dim]none[/dim]")
    table.add_row("Source", record.series_source.value)
    table.add_row("Package", record.opf_path or "[dim]unknown[/dim]")

    console.print(table)

    if len(rootfiles) > 1:
        console.print(
            f"[yellow]{len(rootfiles)} rootfiles declared; "
            f"only {rootfiles[0]} is read and written.[/yellow]"
        )
