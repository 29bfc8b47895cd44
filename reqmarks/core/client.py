"""
ReqMarks HTTP Client
====================
Issues a raw HTTP request against a service and returns the exchange as a
new Transaction. Used by the repeat workflow; every failure surfaces as
``NetworkFailure``.
"""

from __future__ import annotations

import logging
import time
import urllib.parse
from typing import Dict, List, Optional, Tuple

import requests
import urllib3
from urllib3.util import SKIP_HEADER

from reqmarks.core.analyzer import split_message
from reqmarks.core.errors import NetworkFailure
from reqmarks.core.transaction import HttpService, Transaction

logger = logging.getLogger(__name__)

# Hop-by-hop and framing headers that requests recomputes itself
_SKIP_REQUEST_HEADERS = ("content-length", "transfer-encoding", "connection",
                         "proxy-connection", "proxy-authorization")
_SKIP_RESPONSE_HEADERS = ("content-length", "transfer-encoding", "content-encoding",
                          "connection")
# Headers urllib3 would add on its own when the request does not carry them
_SUPPRESS_DEFAULTS = ("User-Agent", "Accept-Encoding")


def _merge_headers(headers: List[Tuple[str, str]]) -> Dict[str, str]:
    """Request headers in order, repeated names folded into one field.

    requests sends one line per name, so repeated ``Cookie`` lines are
    joined with ``"; "`` and any other repeated header with ``", "``.
    """
    merged: Dict[str, str] = {}
    names: Dict[str, str] = {}
    for key, value in headers:
        lower = key.lower()
        if lower in _SKIP_REQUEST_HEADERS:
            continue
        if lower in names:
            sep = "; " if lower == "cookie" else ", "
            merged[names[lower]] = f"{merged[names[lower]]}{sep}{value}"
        else:
            names[lower] = key
            merged[key] = value
    for name in _SUPPRESS_DEFAULTS:
        if name.lower() not in names:
            merged[name] = SKIP_HEADER
    return merged


class HttpClient:
    """Sends raw request bytes to an ``HttpService`` using requests."""

    def __init__(
        self,
        timeout: float = 30,
        verify_tls: bool = False,
        follow_redirects: bool = False,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.follow_redirects = follow_redirects
        if session is None:
            session = requests.Session()
            # Repeats go straight to the target, never through env proxies,
            # and carry only the headers the request itself has
            session.trust_env = False
            session.headers.clear()
        self._session = session
        if not verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @staticmethod
    def _check_service(service: Optional[HttpService]) -> HttpService:
        if service is None or not service.host:
            raise NetworkFailure("No target service for request")
        if service.protocol not in ("http", "https"):
            raise NetworkFailure(f"Unsupported protocol: {service.protocol!r}")
        if not 0 < service.port < 65536:
            raise NetworkFailure(f"Invalid port: {service.port}")
        return service

    def issue_request(self, service: Optional[HttpService], request: bytes) -> Transaction:
        """Send ``request`` to ``service`` and return the resulting transaction.

        Raises:
            NetworkFailure: bad service descriptor, malformed request line,
                connection error or timeout.
        """
        service = self._check_service(service)
        start_line, headers, body = split_message(request or b"")
        parts = start_line.split(" ")
        if len(parts) < 2 or not parts[0]:
            raise NetworkFailure(f"Malformed request line: {start_line!r}")
        method, target = parts[0], parts[1]

        # The service decides where the request goes, not the request line
        if target.lower().startswith(("http://", "https://")):
            try:
                parsed = urllib.parse.urlsplit(target)
            except ValueError as e:
                raise NetworkFailure(f"Malformed request target: {target!r}") from e
            target = (parsed.path or "/") + (f"?{parsed.query}" if parsed.query else "")
        url = service.base_url + (target if target.startswith("/") else f"/{target}")

        req_headers = _merge_headers(headers)

        start_time = time.time()
        try:
            resp = self._session.request(
                method,
                url,
                headers=req_headers,
                data=body or None,
                timeout=self.timeout,
                verify=self.verify_tls,
                allow_redirects=self.follow_redirects,
            )
        except requests.RequestException as e:
            logger.info(f"Request to {url} failed: {e}")
            raise NetworkFailure(f"{method} {url} failed: {e}") from e

        logger.debug(f"{method} {url} -> {resp.status_code} "
                     f"({(time.time() - start_time) * 1000:.0f}ms)")
        return Transaction(
            request=request,
            http_service=service,
            response=self._raw_response(resp),
        )

    @staticmethod
    def _raw_response(resp: requests.Response) -> bytes:
        """Rebuild wire-style response bytes from a requests response."""
        content = resp.content or b""
        lines = [f"HTTP/1.1 {resp.status_code} {resp.reason or ''}".rstrip()]
        for key, value in resp.headers.items():
            if key.lower() not in _SKIP_RESPONSE_HEADERS:
                lines.append(f"{key}: {value}")
        lines.append(f"Content-Length: {len(content)}")
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("iso-8859-1", errors="replace") + content
