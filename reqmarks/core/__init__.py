"""
ReqMarks Core Module
"""

from reqmarks.core.analyzer import TransactionAnalyzer
from reqmarks.core.bookmarks import COLUMNS, Bookmark, BookmarkStore
from reqmarks.core.client import HttpClient
from reqmarks.core.dispatch import ControlDispatcher
from reqmarks.core.errors import BookmarkIndexError, HarImportError, NetworkFailure, ReqMarksError
from reqmarks.core.extractor import MetadataExtractor
from reqmarks.core.history import TrafficHistory
from reqmarks.core.repeat import RepeatTask, RepeatWorkflow
from reqmarks.core.session import BookmarkSession
from reqmarks.core.transaction import HttpService, Transaction, TransactionRef
from reqmarks.core.viewer import MessageEditor

__all__ = [
    "COLUMNS",
    "Bookmark",
    "BookmarkIndexError",
    "BookmarkSession",
    "BookmarkStore",
    "ControlDispatcher",
    "HarImportError",
    "HttpClient",
    "HttpService",
    "MessageEditor",
    "MetadataExtractor",
    "NetworkFailure",
    "RepeatTask",
    "RepeatWorkflow",
    "ReqMarksError",
    "TrafficHistory",
    "Transaction",
    "TransactionAnalyzer",
    "TransactionRef",
]
