# ABOUTME: The `epubseries set` and `epubseries clear` commands for writing series metadata.
# ABOUTME: Plans per-file edits, saves them one by one, and reports saved/failed counts.

from pathlib import Path

import click
from rich.console import Console

from epubseries.cli.options import backup_options, convention_options, recursive_option
from epubseries.core.numbering import plan_edits
from epubseries.core.scanner import find_epubs
from epubseries.core.writer import SaveResult, SeriesEdit, save_batch
from epubseries.formats.opf import read_book_safely

console = Console()

_paths_argument = click.argument(
    "paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, path_type=Path),
)
_dry_run_option = click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Show what would change without writing anything.",
)


def _collect_epubs(paths: tuple[Path, ...], recursive: bool) -> list[Path]:
    """Expand directories to their EPUB files, keeping argument order and dropping repeats."""
    seen: set[Path] = set()
    collected: list[Path] = []
    for path in paths:
        for epub_path in find_epubs(path, recursive):
            if epub_path not in seen:
                seen.add(epub_path)
                collected.append(epub_path)
    return collected


def _report(result: SaveResult, dry_run: bool) -> None:
    name = result.path.name
    if not result.success:
        console.print(f"  [red]Failed:[/red] {name}: {result.error}")
    elif not result.changed:
        console.print(f"  [dim]Unchanged:[/dim] {name}")
    elif dry_run:
        console.print(f"  [cyan]Would update:[/cyan] {name}")
    else:
        console.print(f"  [green]Updated:[/green] {name}")


def _skip_existing(edits: list[SeriesEdit]) -> tuple[list[SeriesEdit], int]:
    """Drop edits for books that already carry a series."""
    kept: list[SeriesEdit] = []
    skipped = 0
    for edit in edits:
        record = read_book_safely(edit.path)
        if record.has_series:
            console.print(
                f"  [dim]Skipped:[/dim] {edit.path.name} (already in {record.series_label})"
            )
            skipped += 1
        else:
            kept.append(edit)
    return kept, skipped


def _run_batch(
    edits: list[SeriesEdit], *, dry_run: bool, skipped: int = 0, **options: object
) -> None:
    if not edits and not skipped:
        console.print("[yellow]No EPUB files found.[/yellow]")
        return

    result = save_batch(
        edits,
        on_result=lambda outcome: _report(outcome, dry_run),
        dry_run=dry_run,
        **options,
    )

    verb = "would change" if dry_run else "saved"
    parts = [f"[green]{result.saved} {verb}[/green]"]
    if result.unchanged:
        parts.append(f"[dim]{result.unchanged} unchanged[/dim]")
    if skipped:
        parts.append(f"[dim]{skipped} skipped[/dim]")
    if result.failed:
        parts.append(f"[red]{result.failed} failed[/red]")
    console.print("\n" + ", ".join(parts))

    if result.failed:
        raise SystemExit(1)


@click.command("set")
@_paths_argument
@click.option("-s", "--series", default=None, help="Series name to write.")
@click.option("-i", "--index", default=None, help="Series index to write to every file.")
@click.option(
    "--auto-index",
    is_flag=True,
    default=False,
    help="Number the files in path order, starting at --start.",
)
@click.option("--start", type=int, default=1, show_default=True, help="First number for --auto-index.")
@click.option(
    "--continue",
    "continue_run",
    is_flag=True,
    default=False,
    help="Keep the first file's index and number the rest after it.",
)
@click.option(
    "--from-folder",
    is_flag=True,
    default=False,
    help="Use each file's folder name as its series name.",
)
@click.option(
    "--skip-existing",
    is_flag=True,
    default=False,
    help="Leave books that already have a series alone.",
)
@recursive_option
@backup_options
@convention_options
@_dry_run_option
def set_series(
    paths: tuple[Path, ...],
    series: str | None,
    index: str | None,
    auto_index: bool,
    start: int,
    continue_run: bool,
    from_folder: bool,
    skip_existing: bool,
    recursive: bool,
    backup: bool,
    backup_dir: Path | None,
    write_collection: bool,
    write_calibre: bool,
    dry_run: bool,
) -> None:
    """Write a series name and index into each EPUB in PATHS."""
    series = series.strip() if series is not None else None
    if not series and not from_folder:
        raise click.UsageError("Give a series name with --series, or use --from-folder.")
    if sum([index is not None, auto_index, continue_run]) > 1:
        raise click.UsageError("--index, --auto-index and --continue are mutually exclusive.")
    if not write_collection and not write_calibre:
        raise click.UsageError("At least one of --epub3 and --calibre must be enabled.")

    epub_paths = _collect_epubs(paths, recursive)

    continue_from = None
    if continue_run and epub_paths:
        continue_from = read_book_safely(epub_paths[0]).series_index

    edits = plan_edits(
        epub_paths,
        series,
        index.strip() if index is not None else None,
        auto_index=auto_index,
        start=start,
        continue_from=continue_from,
        from_folder=from_folder,
    )

    # Numbering is planned over every file, so skipped books keep their slot.
    skipped = 0
    if skip_existing:
        edits, skipped = _skip_existing(edits)

    _run_batch(
        edits,
        dry_run=dry_run,
        skipped=skipped,
        backup=backup,
        backup_dir=backup_dir,
        backup_base=paths[0] if backup_dir is not None and paths[0].is_dir() else None,
        write_collection=write_collection,
        write_calibre=write_calibre,
    )


@click.command("clear")
@_paths_argument
@recursive_option
@backup_options
@_dry_run_option
def clear_series(
    paths: tuple[Path, ...],
    recursive: bool,
    backup: bool,
    backup_dir: Path | None,
    dry_run: bool,
) -> None:
    """Remove the series tags of both conventions from each EPUB in PATHS."""
    edits = plan_edits(_collect_epubs(paths, recursive), "")
    _run_batch(
        edits,
        dry_run=dry_run,
        backup=backup,
        backup_dir=backup_dir,
        backup_base=paths[0] if backup_dir is not None and paths[0].is_dir() else None,
    )
