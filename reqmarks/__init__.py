"""
ReqMarks: bookmarks for captured HTTP traffic
==============================================

Mark interesting request/response pairs from a capture, keep a durable
snapshot of each, and repeat them on demand.

Cross-platform: Linux · macOS · Windows
"""

__version__ = "1.0.0"
__app_name__ = "ReqMarks"
