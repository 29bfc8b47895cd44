"""
ReqMarks Message Editor
=======================
The request/response viewer pair under the bookmarks table. Holds the
currently displayed transaction, an editable request buffer (what a repeat
sends) and the last response or error. Owned by the control thread.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from reqmarks.core.transaction import HttpService, TransactionRef

logger = logging.getLogger(__name__)


class MessageEditor:
    """Request/response viewers plus the displayed transaction.

    Change callbacks receive one of ``"show"``, ``"request"``,
    ``"response"`` or ``"error"``.
    """

    def __init__(self):
        self.transaction_ref: Optional[TransactionRef] = None
        self.request: bytes = b""
        self.response: bytes = b""
        self.last_error: str = ""
        self._callbacks: List[Callable[[str], None]] = []

    @property
    def http_service(self) -> Optional[HttpService]:
        if self.transaction_ref is None:
            return None
        return self.transaction_ref.http_service

    def on_change(self, callback: Callable[[str], None]) -> None:
        self._callbacks.append(callback)

    def _notify(self, kind: str) -> None:
        for cb in self._callbacks:
            try:
                cb(kind)
            except Exception as e:
                logger.debug(f"Viewer callback error: {e}")

    def show(self, ref: TransactionRef) -> None:
        """Display a stored transaction in both viewers."""
        self.transaction_ref = ref
        self.request = ref.request
        self.response = ref.response if ref.has_response else b""
        self.last_error = ""
        self._notify("show")

    def set_request(self, request: bytes) -> None:
        """Replace the request buffer (operator edit)."""
        self.request = request
        self._notify("request")

    def set_response(self, response: bytes) -> None:
        self.response = response
        self.last_error = ""
        self._notify("response")

    def report_error(self, message: str) -> None:
        self.last_error = message
        self._notify("error")
