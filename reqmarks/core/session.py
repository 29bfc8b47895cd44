"""
ReqMarks Bookmark Session
=========================
Wires the bookmarks tab together: store, extractor, message editor and
repeat workflow, plus the "add repeated request to table" toggle.
One session lives as long as the UI that created it.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from reqmarks.config import ReqMarksConfig
from reqmarks.core.analyzer import TransactionAnalyzer
from reqmarks.core.bookmarks import Bookmark, BookmarkStore
from reqmarks.core.client import HttpClient
from reqmarks.core.dispatch import ControlDispatcher
from reqmarks.core.extractor import MetadataExtractor
from reqmarks.core.repeat import RepeatTask, RepeatWorkflow
from reqmarks.core.transaction import Transaction
from reqmarks.core.viewer import MessageEditor

logger = logging.getLogger(__name__)


class BookmarkSession:
    """The bookmarks tab: table data, viewers and repeat controls."""

    def __init__(
        self,
        config: Optional[ReqMarksConfig] = None,
        analyzer: Optional[TransactionAnalyzer] = None,
        client: Optional[HttpClient] = None,
        dispatcher: Optional[ControlDispatcher] = None,
    ):
        self.config = config or ReqMarksConfig()
        self.analyzer = analyzer or TransactionAnalyzer(self.config.storage.buffers_path)
        self.client = client or HttpClient(
            timeout=self.config.repeat.timeout,
            verify_tls=self.config.repeat.verify_tls,
            follow_redirects=self.config.repeat.follow_redirects,
        )
        self.dispatcher = dispatcher or ControlDispatcher()
        self.store = BookmarkStore()
        self.editor = MessageEditor()
        self.extractor = MetadataExtractor(
            self.analyzer,
            highlight_color=self.config.bookmarks.highlight_color,
            comment=self.config.bookmarks.comment,
            max_parameters=self.config.bookmarks.max_parameters,
        )
        self.workflow = RepeatWorkflow(
            client=self.client,
            extractor=self.extractor,
            store=self.store,
            dispatcher=self.dispatcher,
            viewer=self.editor,
            max_workers=self.config.repeat.max_workers,
        )
        self.repeat_in_table: bool = self.config.bookmarks.repeat_in_table
        self.selected: Optional[Bookmark] = None

    # ── Bookmarks ────────────────────────────────────────────────────────

    def add_bookmarks(self, transactions: Iterable[Transaction]) -> List[Bookmark]:
        """Bookmark one or more transactions, in order."""
        added = []
        for transaction in transactions:
            bookmark = self.extractor.create_bookmark(transaction, repeated=False)
            self.store.add(bookmark)
            added.append(bookmark)
        return added

    def select(self, index: int) -> Bookmark:
        """Show the bookmark at row ``index`` in the viewers."""
        bookmark = self.store.get(index)
        self.selected = bookmark
        self.editor.show(bookmark.transaction_ref)
        return bookmark

    def remove_rows(self, indexes: Iterable[int]) -> int:
        """Remove the bookmarks at the given rows. Returns number removed."""
        doomed = [self.store.get(i) for i in set(indexes)]
        removed = self.store.remove_many(doomed)
        if self.selected is not None and self.store.index_of(self.selected) is None:
            self.selected = None
        return removed

    def clear(self) -> int:
        self.selected = None
        return self.store.clear()

    # ── Repeat ───────────────────────────────────────────────────────────

    def edit_request(self, request: bytes) -> None:
        self.editor.set_request(request)

    def repeat_selected(self, also_bookmark: Optional[bool] = None) -> Optional[RepeatTask]:
        """Repeat what the request viewer currently shows.

        ``also_bookmark`` defaults to the session's ``repeat_in_table`` toggle.
        Returns None (and reports to the viewer) when nothing is selected.
        """
        if self.selected is None:
            self.editor.report_error("Select a bookmark to repeat")
            return None
        if also_bookmark is None:
            also_bookmark = self.repeat_in_table
        return self.workflow.repeat(self.selected, also_bookmark, request=self.editor.request)

    def process_pending(self) -> int:
        """Apply finished repeats on the calling (control) thread."""
        return self.dispatcher.drain()

    def close(self) -> None:
        """Drop temp buffers and stop the repeat pool."""
        self.workflow.shutdown()
        removed = self.analyzer.cleanup()
        logger.debug(f"Session closed, removed {removed} buffer files")
