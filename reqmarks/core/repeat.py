"""
ReqMarks Repeat Workflow
========================
Re-issues a bookmarked request without blocking the caller.

Each repeat runs on its own daemon thread (or on a bounded pool when
``max_workers > 0``). The worker only performs the network call; the
outcome is posted to the ``ControlDispatcher`` and applied on the control
thread: the response viewer is updated and, if requested when the repeat
was started, the new transaction is bookmarked with ``repeated=True``.
A failed request is reported to the viewer and leaves the store as is.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

from reqmarks.core.bookmarks import Bookmark, BookmarkStore
from reqmarks.core.client import HttpClient
from reqmarks.core.dispatch import ControlDispatcher
from reqmarks.core.errors import NetworkFailure
from reqmarks.core.extractor import MetadataExtractor
from reqmarks.core.transaction import Transaction
from reqmarks.core.viewer import MessageEditor

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class RepeatTask:
    """One in-flight repeat. ``wait`` returns once the worker has finished."""
    id: int
    bookmark: Bookmark
    request: bytes
    also_bookmark: bool
    started: float = field(default_factory=time.time)
    transaction: Optional[Transaction] = None
    error: str = ""
    result_bookmark: Optional[Bookmark] = None
    _done: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def failed(self) -> bool:
        return bool(self.error)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)


class RepeatWorkflow:
    """Fire-and-forget repeats of bookmarked requests."""

    def __init__(
        self,
        client: HttpClient,
        extractor: MetadataExtractor,
        store: BookmarkStore,
        dispatcher: ControlDispatcher,
        viewer: MessageEditor,
        max_workers: int = 0,
    ):
        self.client = client
        self.extractor = extractor
        self.store = store
        self.dispatcher = dispatcher
        self.viewer = viewer
        self._executor: Optional[ThreadPoolExecutor] = None
        if max_workers > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="reqmarks-repeat",
            )
        self._ids = itertools.count(1)
        self._tasks: List[RepeatTask] = []
        self._lock = threading.Lock()

    # ── Public API ───────────────────────────────────────────────────────

    def repeat(
        self,
        bookmark: Bookmark,
        also_bookmark: bool,
        request: Optional[bytes] = None,
    ) -> RepeatTask:
        """Start repeating ``bookmark`` and return immediately.

        Args:
            bookmark: Source of the target service (and of the request
                bytes when ``request`` is not given).
            also_bookmark: Add the result to the store. Read once, here.
            request: Bytes to send instead of the stored request, e.g. the
                request viewer's edited buffer.
        """
        task = RepeatTask(
            id=next(self._ids),
            bookmark=bookmark,
            request=request if request is not None else bookmark.transaction_ref.request,
            also_bookmark=also_bookmark,
        )
        with self._lock:
            self._tasks = [t for t in self._tasks if not t.done]
            self._tasks.append(task)

        if self._executor is not None:
            self._executor.submit(self._run, task)
        else:
            threading.Thread(
                target=self._run,
                args=(task,),
                daemon=True,
                name=f"reqmarks-repeat-{task.id}",
            ).start()
        logger.debug(f"Repeat #{task.id} started for {bookmark.url}")
        return task

    def outstanding(self) -> List[RepeatTask]:
        """Repeats whose worker has not finished yet."""
        with self._lock:
            return [t for t in self._tasks if not t.done]

    def wait_all(self, timeout: Optional[float] = None) -> bool:
        """Block until every outstanding worker finishes. False on timeout."""
        deadline = None if timeout is None else time.time() + timeout
        for task in self.outstanding():
            remaining = None if deadline is None else max(0.0, deadline - time.time())
            if not task.wait(remaining):
                return False
        return True

    def shutdown(self) -> None:
        """Stop accepting pool work. In-flight workers are abandoned."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)

    # ── Worker ───────────────────────────────────────────────────────────

    def _run(self, task: RepeatTask) -> None:
        service = task.bookmark.transaction_ref.http_service
        try:
            task.transaction = self.client.issue_request(service, task.request)
        except NetworkFailure as e:
            task.error = str(e)
            logger.warning(f"Repeat #{task.id} failed: {e}")
            self.dispatcher.post(self._fail, task)
        except Exception as e:
            task.error = f"Unexpected error: {e}"
            logger.exception(f"Repeat #{task.id} crashed")
            self.dispatcher.post(self._fail, task)
        else:
            self.dispatcher.post(self._complete, task)
        finally:
            task._done.set()

    # ── Control-thread handlers ──────────────────────────────────────────

    def _complete(self, task: RepeatTask) -> None:
        transaction = task.transaction
        self.viewer.set_response(transaction.response or b"")
        if task.also_bookmark:
            task.result_bookmark = self.extractor.create_bookmark(transaction, repeated=True)
            self.store.add(task.result_bookmark)

    def _fail(self, task: RepeatTask) -> None:
        self.viewer.report_error(f"Repeat failed: {task.error}")
