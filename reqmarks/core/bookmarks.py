"""
ReqMarks Bookmarks
==================
The bookmark record and the ordered store that backs the bookmarks table.

Row index is the bookmark's displayed ID. Removing rows shifts the ID of
every row after them; there is no separate stable identifier.

The store is single-writer: ``add``, ``remove_many`` and ``clear`` (and
the notifications they fire) must all run on the thread that owns the
store. Worker threads hand results over through ``ControlDispatcher``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from reqmarks.core.errors import BookmarkIndexError
from reqmarks.core.transaction import TransactionRef

logger = logging.getLogger(__name__)

COLUMNS: Tuple[str, ...] = (
    "ID",
    "Added",
    "Host",
    "URL",
    "Title",
    "Repeated",
    "Method",
    "Status",
    "Parameters",
    "MIME",
    "Protocol",
    "File",
)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


# ── Data Model ───────────────────────────────────────────────────────────────

@dataclass(frozen=True, eq=False)
class Bookmark:
    """A bookmarked transaction. Immutable; compared and hashed by identity."""
    transaction_ref: TransactionRef
    timestamp: str
    host: str = ""
    url: str = ""
    method: str = ""
    status_code: str = ""
    title: str = ""
    mime_type: str = ""
    protocol: str = ""
    path: str = ""
    parameters: str = ""
    repeated: bool = False

    def row(self, index: int) -> Tuple[Any, ...]:
        """Table row for this bookmark displayed at ``index``."""
        return (
            index,
            self.timestamp,
            self.host,
            self.url,
            self.title,
            self.repeated,
            self.method,
            self.status_code,
            self.parameters,
            self.mime_type,
            self.protocol,
            self.path,
        )


# ── Store ────────────────────────────────────────────────────────────────────

class BookmarkStore:
    """Ordered bookmark collection with row-level change notifications.

    Observers:
      • ``on_row_inserted(cb)`` – ``cb(index)`` after a bookmark is appended
      • ``on_rows_changed(cb)`` – ``cb()`` after any bulk change (removal, clear)
    """

    def __init__(self):
        self._bookmarks: List[Bookmark] = []
        self._inserted_callbacks: List[Callable[[int], None]] = []
        self._changed_callbacks: List[Callable[[], None]] = []

    # ── Observers ────────────────────────────────────────────────────────

    def on_row_inserted(self, callback: Callable[[int], None]) -> None:
        """Register a callback fired with the index of each new row."""
        self._inserted_callbacks.append(callback)

    def on_rows_changed(self, callback: Callable[[], None]) -> None:
        """Register a callback fired when the whole table must be refreshed."""
        self._changed_callbacks.append(callback)

    def _fire_row_inserted(self, index: int) -> None:
        for cb in self._inserted_callbacks:
            try:
                cb(index)
            except Exception as e:
                logger.debug(f"Row-inserted callback error: {e}")

    def _fire_rows_changed(self) -> None:
        for cb in self._changed_callbacks:
            try:
                cb()
            except Exception as e:
                logger.debug(f"Rows-changed callback error: {e}")

    # ── Mutation ─────────────────────────────────────────────────────────

    def add(self, bookmark: Bookmark) -> int:
        """Append a bookmark. Returns its row index."""
        self._bookmarks.append(bookmark)
        index = len(self._bookmarks) - 1
        self._fire_row_inserted(index)
        return index

    def remove_many(self, selected: Iterable[Bookmark]) -> int:
        """Remove the given bookmarks (by identity). Returns number removed.

        Bookmarks that are not in the store are ignored; when nothing is
        removed no notification fires.
        """
        doomed = {id(b) for b in selected}
        if not doomed:
            return 0
        kept = [b for b in self._bookmarks if id(b) not in doomed]
        removed = len(self._bookmarks) - len(kept)
        if removed:
            self._bookmarks = kept
            self._fire_rows_changed()
        return removed

    def clear(self) -> int:
        """Remove all bookmarks. Returns number cleared."""
        count = len(self._bookmarks)
        self._bookmarks.clear()
        self._fire_rows_changed()
        return count

    # ── Access ───────────────────────────────────────────────────────────

    def size(self) -> int:
        return len(self._bookmarks)

    def get(self, index: int) -> Bookmark:
        """Bookmark at row ``index``; negative indexes are out of range too."""
        if not 0 <= index < len(self._bookmarks):
            raise BookmarkIndexError(index, len(self._bookmarks))
        return self._bookmarks[index]

    def index_of(self, bookmark: Bookmark) -> Optional[int]:
        for i, b in enumerate(self._bookmarks):
            if b is bookmark:
                return i
        return None

    def row(self, index: int) -> Tuple[Any, ...]:
        return self.get(index).row(index)

    def rows(self) -> List[Tuple[Any, ...]]:
        return [b.row(i) for i, b in enumerate(self._bookmarks)]

    def __len__(self) -> int:
        return len(self._bookmarks)

    def __iter__(self) -> Iterator[Bookmark]:
        return iter(list(self._bookmarks))
