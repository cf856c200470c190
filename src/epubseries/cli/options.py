# ABOUTME: Shared Click options for epubseries CLI commands.
# ABOUTME: Provides reusable decorators for recursion, backups, and series conventions.

from pathlib import Path

import click

from epubseries.core.writer import BACKUP_SUFFIX

recursive_option = click.option(
    "-r", "--recursive",
    is_flag=True,
    default=False,
    help="Descend into subdirectories.",
)


def backup_options(func):
    """--backup/--no-backup and --backup-dir."""
    func = click.option(
        "--backup-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help=f"Write {BACKUP_SUFFIX} copies under this directory instead of beside each file.",
    )(func)
    func = click.option(
        "--backup/--no-backup",
        default=True,
        help=f"Copy each file to <file>{BACKUP_SUFFIX} before writing (default: on).",
    )(func)
    return func


def convention_options(func):
    """--epub3/--no-epub3 and --calibre/--no-calibre."""
    func = click.option(
        "--calibre/--no-calibre",
        "write_calibre",
        default=True,
        help="Write calibre:series tags (default: on).",
    )(func)
    func = click.option(
        "--epub3/--no-epub3",
        "write_collection",
        default=True,
        help="Write EPUB3 belongs-to-collection tags (default: on).",
    )(func)
    return func
