# ABOUTME: Metadata package for the series record model.
# ABOUTME: Exports BookRecord and SeriesSource used throughout epubseries.

from epubseries.metadata.types import UNKNOWN, BookRecord, SeriesSource

__all__ = [
    "UNKNOWN",
    "BookRecord",
    "SeriesSource",
]
