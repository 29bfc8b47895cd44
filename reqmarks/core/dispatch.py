"""
ReqMarks Control-Thread Dispatch
================================
Worker threads never touch the bookmark store or the viewers directly.
They ``post`` callables here, and the owning thread runs them with
``drain`` (the REPL drains before every prompt).
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class ControlDispatcher:
    """Task queue drained by the thread that created it."""

    def __init__(self):
        self._queue: queue.Queue = queue.Queue()
        self._owner = threading.get_ident()

    @property
    def on_owner_thread(self) -> bool:
        return threading.get_ident() == self._owner

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Queue ``fn(*args)`` for the owner thread. Safe from any thread."""
        self._queue.put((fn, args))

    def drain(self) -> int:
        """Run every queued task on the owner thread. Returns tasks run.

        A task that raises is logged and the rest still run.
        """
        if not self.on_owner_thread:
            raise RuntimeError("ControlDispatcher.drain() called off the owner thread")
        count = 0
        while True:
            try:
                fn, args = self._queue.get_nowait()
            except queue.Empty:
                break
            try:
                fn(*args)
            except Exception:
                logger.exception(f"Dispatched task {getattr(fn, '__name__', fn)!r} failed")
            count += 1
        return count
