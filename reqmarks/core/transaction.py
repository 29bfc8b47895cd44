"""
ReqMarks Transaction Model
==========================
The request/response pair as the capture tool sees it, the durable
file-backed copy a bookmark keeps, and the parsed request/response views
produced by the analyzer.
"""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DEFAULT_PORTS = {"http": 80, "https": 443}


# ── Network Service ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HttpService:
    """Where a request is sent: host, port and protocol."""
    host: str
    port: int
    protocol: str = "http"

    @classmethod
    def from_url(cls, url: str) -> "HttpService":
        """Build a service from an absolute URL (``https://host:8443/...``)."""
        parsed = urllib.parse.urlparse(url)
        protocol = (parsed.scheme or "http").lower()
        try:
            port = parsed.port
        except ValueError:
            port = None
        return cls(
            host=parsed.hostname or "",
            port=port or DEFAULT_PORTS.get(protocol, 80),
            protocol=protocol,
        )

    @property
    def base_url(self) -> str:
        """``protocol://host[:port]`` with default ports left out."""
        if DEFAULT_PORTS.get(self.protocol) == self.port:
            return f"{self.protocol}://{self.host}"
        return f"{self.protocol}://{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.base_url


# ── Live Transaction ─────────────────────────────────────────────────────────

@dataclass(eq=False)
class Transaction:
    """A captured request/response pair owned by the capture tool.

    ``highlight`` and ``comment`` are the tool's annotations; bookmarking
    a transaction sets both.
    """
    request: bytes
    http_service: HttpService
    response: Optional[bytes] = None
    highlight: str = ""
    comment: str = ""


@dataclass(frozen=True, eq=False)
class TransactionRef:
    """Durable copy of a transaction whose buffers live in files."""
    http_service: HttpService
    request_path: Path
    response_path: Optional[Path] = None

    @property
    def request(self) -> bytes:
        return self.request_path.read_bytes()

    @property
    def response(self) -> Optional[bytes]:
        if self.response_path is None:
            return None
        return self.response_path.read_bytes()

    @property
    def has_response(self) -> bool:
        return self.response_path is not None


# ── Analysis Results ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Parameter:
    """A request parameter as it appears on the wire (not URL-decoded)."""
    name: str
    value: str
    type: str = "url"  # url | body

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


@dataclass
class RequestInfo:
    """Parsed view of a request."""
    method: str
    url: str
    host: str
    protocol: str
    path: str
    http_version: str = ""
    headers: List[tuple] = field(default_factory=list)
    body: bytes = b""
    parameters: List[Parameter] = field(default_factory=list)

    def header(self, name: str, default: str = "") -> str:
        """First header value matching ``name`` (case-insensitive)."""
        name_lower = name.lower()
        for key, value in self.headers:
            if key.lower() == name_lower:
                return value
        return default


@dataclass
class ResponseInfo:
    """Parsed view of a response."""
    status_code: Optional[int]
    reason: str = ""
    http_version: str = ""
    headers: List[tuple] = field(default_factory=list)
    body: bytes = b""
    inferred_mime_type: str = ""

    def header(self, name: str, default: str = "") -> str:
        name_lower = name.lower()
        for key, value in self.headers:
            if key.lower() == name_lower:
                return value
        return default
