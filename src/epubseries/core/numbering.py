# ABOUTME: Series index planning for batch edits: auto-numbering and continuing a run.
# ABOUTME: Turns an ordered list of files into SeriesEdits before anything is written.

import math
import re
from collections.abc import Sequence
from pathlib import Path

from epubseries.core.writer import SeriesEdit

# Leading number of an index such as "3", "2.5" or "4a".
_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")


def parse_index(index: str | None) -> float:
    """Numeric value of a textual series index, 0 when it has none."""
    if not index:
        return 0.0
    match = _LEADING_NUMBER_RE.match(index)
    return float(match.group(1)) if match else 0.0


def sequential_indices(count: int, start: int = 1) -> list[str]:
    """'start', 'start+1', ... for count files."""
    return [str(start + offset) for offset in range(count)]


def continue_indices(first_index: str | None, count: int) -> list[str]:
    """Keep the first file's index and number the rest after it.

    The files after the first get the next whole numbers following the
    first index, so '2.5' is followed by '3', '4', ...
    """
    if count <= 0:
        return []
    following = math.floor(parse_index(first_index)) + 1
    return [first_index or ""] + sequential_indices(count - 1, following)


def series_from_folder(path: Path) -> str:
    """The name of the folder containing path, used as a series name."""
    return Path(path).resolve().parent.name


def plan_edits(
    paths: Sequence[Path],
    series: str | None,
    index: str | None = None,
    *,
    auto_index: bool = False,
    start: int = 1,
    continue_from: str | None = None,
    from_folder: bool = False,
) -> list[SeriesEdit]:
    """Build the SeriesEdits for an ordered batch of files.

    Args:
        paths: Files in the order they should be numbered.
        series: Series name for every file; ignored per file when from_folder is set.
        index: A fixed index for every file, used when no numbering mode is on.
        auto_index: Number the files start, start+1, ...
        start: First number for auto_index.
        continue_from: Current index of the first file; the rest continue after it.
        from_folder: Use each file's parent folder name as its series.

    Returns:
        One SeriesEdit per path, in order.
    """
    if auto_index and continue_from is not None:
        raise ValueError("auto_index and continue_from are mutually exclusive")

    if auto_index:
        indices: list[str | None] = list(sequential_indices(len(paths), start))
    elif continue_from is not None:
        indices = list(continue_indices(continue_from, len(paths)))
    else:
        indices = [index] * len(paths)

    return [
        SeriesEdit(
            path=Path(path),
            series=series_from_folder(path) if from_folder else (series or ""),
            index=position,
        )
        for path, position in zip(paths, indices)
    ]
