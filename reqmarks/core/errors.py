"""
ReqMarks Errors
===============
Exception types raised by the core. Missing response data and missing
page titles are not errors; they degrade to empty strings.
"""


class ReqMarksError(Exception):
    """Base class for all ReqMarks errors."""


class BookmarkIndexError(ReqMarksError, IndexError):
    """A bookmark row was requested outside ``0..size()-1``."""

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"Bookmark row {index} out of range (0-{size - 1})" if size
                         else f"Bookmark row {index} out of range (no bookmarks)")


class NetworkFailure(ReqMarksError):
    """A repeated request could not be issued or did not complete."""


class HarImportError(ReqMarksError):
    """A HAR capture could not be read."""
