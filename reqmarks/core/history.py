"""
ReqMarks Traffic History
========================
The capture tool's side of the house: an ordered list of observed
transactions, filled from HAR captures or raw request/response files.
Bookmarking a transaction annotates it here.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
import urllib.parse
from pathlib import Path
from typing import Any, Dict, List, Optional

from reqmarks.core.errors import HarImportError
from reqmarks.core.transaction import HttpService, Transaction

logger = logging.getLogger(__name__)


# ── HAR Conversion ───────────────────────────────────────────────────────────

def _har_headers(headers: List[Dict[str, Any]]) -> List[str]:
    # HTTP/2 pseudo-headers (:authority, :path ...) have no HTTP/1.x form
    return [
        f"{h.get('name', '')}: {h.get('value', '')}"
        for h in headers
        if h.get("name") and not h["name"].startswith(":")
    ]


def _http1_version(version: str) -> str:
    return version if version.upper().startswith("HTTP/1") else "HTTP/1.1"


def har_entry_to_transaction(entry: Dict[str, Any]) -> Transaction:
    """Convert one HAR 1.2 entry into a Transaction with raw HTTP bytes."""
    request = entry.get("request") or {}
    url = request.get("url", "")
    if not url:
        raise HarImportError("HAR entry has no request URL")

    parsed = urllib.parse.urlsplit(url)
    target = parsed.path or "/"
    if parsed.query:
        target += f"?{parsed.query}"
    version = _http1_version(request.get("httpVersion", ""))

    lines = [f"{request.get('method', 'GET')} {target} {version}"]
    lines.extend(_har_headers(request.get("headers", [])))
    if not any(line.lower().startswith("host:") for line in lines[1:]):
        lines.insert(1, f"Host: {parsed.netloc}")
    body = ((request.get("postData") or {}).get("text") or "").encode("utf-8")
    raw_request = ("\r\n".join(lines) + "\r\n\r\n").encode("iso-8859-1", errors="replace") + body

    raw_response: Optional[bytes] = None
    response = entry.get("response") or {}
    status = response.get("status", 0)
    if status:
        content = response.get("content") or {}
        text = content.get("text") or ""
        if content.get("encoding") == "base64":
            try:
                resp_body = base64.b64decode(text)
            except (binascii.Error, ValueError):
                resp_body = text.encode("utf-8")
        else:
            resp_body = text.encode("utf-8")
        resp_lines = [f"{_http1_version(response.get('httpVersion', ''))} {status} "
                      f"{response.get('statusText', '')}".rstrip()]
        resp_lines.extend(_har_headers(response.get("headers", [])))
        raw_response = (("\r\n".join(resp_lines) + "\r\n\r\n").encode("iso-8859-1", errors="replace")
                        + resp_body)

    return Transaction(
        request=raw_request,
        http_service=HttpService.from_url(url),
        response=raw_response,
    )


# ── History ──────────────────────────────────────────────────────────────────

class TrafficHistory:
    """Ordered list of captured transactions."""

    def __init__(self):
        self._items: List[Transaction] = []
        self._lock = threading.Lock()

    def add(self, transaction: Transaction) -> int:
        """Append a transaction. Returns its 1-based history number."""
        with self._lock:
            self._items.append(transaction)
            return len(self._items)

    def get(self, number: int) -> Optional[Transaction]:
        """Get a transaction by 1-based history number."""
        with self._lock:
            if 1 <= number <= len(self._items):
                return self._items[number - 1]
        return None

    def items(self) -> List[Transaction]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def import_har(self, path: Path) -> int:
        """Load every entry of a HAR file. Returns the number imported.

        Entries that cannot be converted are skipped and logged.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise HarImportError(f"Cannot read HAR file {path}: {e}") from e

        entries = (data.get("log") or {}).get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise HarImportError(f"{path} is not a HAR file (no log.entries)")

        imported = 0
        for i, entry in enumerate(entries):
            try:
                self.add(har_entry_to_transaction(entry))
                imported += 1
            except (HarImportError, AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping HAR entry {i}: {e}")
        logger.info(f"Imported {imported}/{len(entries)} entries from {path}")
        return imported

    def load_raw(
        self,
        request_file: Path,
        service_url: str,
        response_file: Optional[Path] = None,
    ) -> int:
        """Add a transaction from raw request (and optional response) files."""
        service = HttpService.from_url(service_url)
        request = Path(request_file).read_bytes()
        response = Path(response_file).read_bytes() if response_file else None
        return self.add(Transaction(request=request, http_service=service, response=response))
