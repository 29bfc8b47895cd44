"""
ReqMarks Metadata Extraction
============================
Turns a captured transaction into a Bookmark: buffers are copied to temp
storage, the request and response are analyzed, the page title is pulled
from the response, and the source transaction is annotated so the
operator can see it has been bookmarked.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Callable, Iterable, Optional

from reqmarks.core.analyzer import TransactionAnalyzer
from reqmarks.core.bookmarks import TIMESTAMP_FORMAT, Bookmark
from reqmarks.core.transaction import Parameter, Transaction

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"<title>(.*?)</title>")


def extract_title(text: str) -> str:
    """First ``<title>...</title>`` contents, or ``""``."""
    match = _TITLE_RE.search(text)
    return match.group(1) if match else ""


def join_parameters(parameters: Iterable[Parameter], limit: int = 5) -> str:
    """``name=value`` pairs joined by ``", "``, keeping only the first ``limit``."""
    out = []
    for param in parameters:
        if len(out) >= limit:
            break
        out.append(str(param))
    return ", ".join(out)


class MetadataExtractor:
    """Builds Bookmark records from transactions."""

    def __init__(
        self,
        analyzer: TransactionAnalyzer,
        highlight_color: str = "magenta",
        comment: str = "[^]",
        max_parameters: int = 5,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.analyzer = analyzer
        self.highlight_color = highlight_color
        self.comment = comment
        self.max_parameters = max_parameters
        self._clock = clock or datetime.now

    def create_bookmark(self, transaction: Transaction, repeated: bool = False) -> Bookmark:
        """Snapshot ``transaction`` as a Bookmark and annotate the original.

        A missing response leaves status, MIME type and title empty.
        """
        ref = self.analyzer.externalize_buffers(transaction)
        timestamp = self._clock().strftime(TIMESTAMP_FORMAT)

        request_info = self.analyzer.analyze_request(transaction.request, transaction.http_service)

        status_code = ""
        mime_type = ""
        title = ""
        if transaction.response is not None:
            response_info = self.analyzer.analyze_response(transaction.response)
            if response_info.status_code is not None:
                status_code = str(response_info.status_code)
            mime_type = response_info.inferred_mime_type
            title = extract_title(self.analyzer.bytes_to_string(transaction.response))

        bookmark = Bookmark(
            transaction_ref=ref,
            timestamp=timestamp,
            host=request_info.host,
            url=request_info.url,
            method=request_info.method,
            status_code=status_code,
            title=title,
            mime_type=mime_type,
            protocol=request_info.protocol,
            path=request_info.path,
            parameters=join_parameters(request_info.parameters, self.max_parameters),
            repeated=repeated,
        )

        try:
            self.analyzer.annotate(transaction, self.highlight_color, self.comment)
        except Exception as e:
            logger.debug(f"Annotation failed for {bookmark.url}: {e}")
        logger.info(f"Bookmarked {bookmark.method} {bookmark.url}"
                    f"{' (repeated)' if repeated else ''}")
        return bookmark
