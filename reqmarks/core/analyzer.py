"""
ReqMarks Transaction Analyzer
=============================
Parses raw HTTP/1.x request and response bytes, infers response MIME
types, writes transaction buffers to temp files so the capture tool can
drop its own copies, and applies the bookmark annotation to the source
transaction.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import urllib.parse
from pathlib import Path
from typing import List, Optional, Tuple

from reqmarks.config import BUFFERS_DIR
from reqmarks.core.transaction import (
    HttpService,
    Parameter,
    RequestInfo,
    ResponseInfo,
    Transaction,
    TransactionRef,
)

logger = logging.getLogger(__name__)

HEADER_ENCODING = "iso-8859-1"


# ── Message Parsing ──────────────────────────────────────────────────────────

def split_message(raw: bytes) -> Tuple[str, List[Tuple[str, str]], bytes]:
    """Split a raw HTTP message into start line, headers and body."""
    for sep in (b"\r\n\r\n", b"\n\n"):
        idx = raw.find(sep)
        if idx != -1:
            head, body = raw[:idx], raw[idx + len(sep):]
            break
    else:
        head, body = raw, b""

    lines = head.decode(HEADER_ENCODING).splitlines()
    start_line = lines[0].strip() if lines else ""
    headers: List[Tuple[str, str]] = []
    for line in lines[1:]:
        if ":" not in line:
            continue
        key, _, value = line.partition(":")
        headers.append((key.strip(), value.strip()))
    return start_line, headers, body


def _split_params(text: str, param_type: str) -> List[Parameter]:
    params = []
    for pair in text.split("&"):
        if not pair:
            continue
        name, _, value = pair.partition("=")
        params.append(Parameter(name=name, value=value, type=param_type))
    return params


# ── MIME Inference ───────────────────────────────────────────────────────────

_MAGIC_NUMBERS = [
    (b"\x89PNG\r\n\x1a\n", "PNG"),
    (b"\xff\xd8\xff", "JPEG"),
    (b"GIF87a", "GIF"),
    (b"GIF89a", "GIF"),
]

_IMAGE_SUBTYPES = {"png": "PNG", "jpeg": "JPEG", "jpg": "JPEG", "gif": "GIF"}


def infer_mime_type(body: bytes, content_type: str = "") -> str:
    """Label a response body (``HTML``, ``JSON``, ``PNG``...), or ``""``.

    The body is sniffed first; the Content-Type header is the fallback.
    """
    for magic, label in _MAGIC_NUMBERS:
        if body.startswith(magic):
            return label
    if body.startswith(b"RIFF") and body[8:12] == b"WEBP":
        return "image"

    head = body[:512].lstrip().lower()
    if head.startswith(b"<!doctype html") or head.startswith(b"<html"):
        return "HTML"
    if head.startswith(b"<?xml"):
        return "XML"
    if head[:1] in (b"{", b"["):
        try:
            json.loads(body)
            return "JSON"
        except ValueError:
            pass

    ct = content_type.split(";")[0].strip().lower()
    if not ct:
        return ""
    if "html" in ct:
        return "HTML"
    if "json" in ct:
        return "JSON"
    if "javascript" in ct or "ecmascript" in ct:
        return "script"
    if ct == "text/css":
        return "CSS"
    if "xml" in ct:
        return "XML"
    if ct.startswith("image/"):
        return _IMAGE_SUBTYPES.get(ct[len("image/"):], "image")
    if ct.startswith("text/"):
        return "text"
    return ""


# ── Analyzer ─────────────────────────────────────────────────────────────────

class TransactionAnalyzer:
    """Request/response analysis and buffer storage for captured traffic."""

    def __init__(self, buffers_dir: Optional[Path] = None):
        self.buffers_dir = Path(buffers_dir) if buffers_dir else BUFFERS_DIR
        self._created: List[Path] = []
        self._lock = threading.Lock()

    # ── Analysis ─────────────────────────────────────────────────────────

    def analyze_request(
        self, request: bytes, http_service: Optional[HttpService] = None,
    ) -> RequestInfo:
        """Parse a raw request into method, URL and ordered parameters.

        The URL is built from ``http_service`` (the service the request is
        sent to), whatever host an absolute-form target names. Without a
        service the absolute target, or else the Host header, is used.
        Nothing is validated.
        """
        start_line, headers, body = split_message(request)
        parts = start_line.split(" ")
        method = parts[0] if parts else ""
        target = parts[1] if len(parts) > 1 else "/"
        version = parts[2] if len(parts) > 2 else ""

        info = RequestInfo(
            method=method, url="", host="", protocol="", path="",
            http_version=version, headers=headers, body=body,
        )

        parsed = None
        if target.lower().startswith(("http://", "https://")):
            try:
                parsed = urllib.parse.urlsplit(target)
            except ValueError:
                parsed = None

        if parsed is not None:
            file_part = parsed.path or "/"
            query = parsed.query
            base = f"{parsed.scheme.lower()}://{parsed.netloc}"
            info.host = parsed.hostname or ""
            info.protocol = parsed.scheme.lower()
        else:
            path, _, query = target.partition("?")
            query = query.split("#", 1)[0]
            file_part = path
            host_header = info.header("Host")
            base = f"http://{host_header}"
            info.host = host_header.split(":")[0]
            info.protocol = "http"

        if http_service is not None:
            base = http_service.base_url
            info.host = http_service.host
            info.protocol = http_service.protocol

        info.path = f"{file_part}?{query}" if query else file_part
        info.url = base + info.path
        info.parameters = _split_params(query, "url")

        content_type = info.header("Content-Type").lower()
        if body and content_type.startswith("application/x-www-form-urlencoded"):
            info.parameters.extend(_split_params(body.decode(HEADER_ENCODING), "body"))

        return info

    def analyze_response(self, response: bytes) -> ResponseInfo:
        """Parse a raw response: status code, headers and inferred MIME type."""
        start_line, headers, body = split_message(response)
        parts = start_line.split(" ", 2)
        status = parts[1] if len(parts) > 1 else ""
        info = ResponseInfo(
            status_code=int(status) if status.isdigit() else None,
            reason=parts[2] if len(parts) > 2 else "",
            http_version=parts[0] if parts else "",
            headers=headers,
            body=body,
        )
        info.inferred_mime_type = infer_mime_type(body, info.header("Content-Type"))
        return info

    @staticmethod
    def bytes_to_string(data: bytes) -> str:
        return data.decode("utf-8", errors="replace")

    # ── Buffers ──────────────────────────────────────────────────────────

    def _write_buffer(self, data: bytes, suffix: str) -> Path:
        self.buffers_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix="reqmarks-", suffix=suffix, dir=self.buffers_dir)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        path = Path(name)
        with self._lock:
            self._created.append(path)
        return path

    def externalize_buffers(self, transaction: Transaction) -> TransactionRef:
        """Copy a transaction's buffers to temp files and return a reference."""
        request_path = self._write_buffer(transaction.request, ".req")
        response_path = None
        if transaction.response is not None:
            response_path = self._write_buffer(transaction.response, ".res")
        logger.debug(f"Externalized buffers to {request_path.name}")
        return TransactionRef(
            http_service=transaction.http_service,
            request_path=request_path,
            response_path=response_path,
        )

    def cleanup(self) -> int:
        """Delete every buffer file this analyzer created. Returns count."""
        with self._lock:
            created, self._created = self._created, []
        removed = 0
        for path in created:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
        return removed

    # ── Annotation ───────────────────────────────────────────────────────

    @staticmethod
    def annotate(transaction: Transaction, highlight: str, comment: str) -> None:
        """Mark a transaction in the capture tool (best-effort)."""
        try:
            transaction.highlight = highlight
            transaction.comment = comment
        except AttributeError as e:
            logger.debug(f"Could not annotate transaction: {e}")
