"""
Tests for ReqMarks metadata extraction (transaction -> Bookmark).
"""

import dataclasses
from datetime import datetime
from unittest.mock import patch

import pytest

from reqmarks.core.analyzer import TransactionAnalyzer
from reqmarks.core.extractor import MetadataExtractor, extract_title, join_parameters
from reqmarks.core.transaction import HttpService, Parameter, Transaction

SERVICE = HttpService("shop.example.com", 443, "https")


def _request(target: str = "/products?id=7", method: str = "GET") -> bytes:
    return (f"{method} {target} HTTP/1.1\r\n"
            f"Host: shop.example.com\r\n\r\n").encode()


def _response(body: str = "", status: str = "200 OK",
              content_type: str = "text/html") -> bytes:
    return (f"HTTP/1.1 {status}\r\nContent-Type: {content_type}\r\n\r\n{body}").encode()


@pytest.fixture
def extractor(tmp_path):
    return MetadataExtractor(
        TransactionAnalyzer(buffers_dir=tmp_path),
        clock=lambda: datetime(2024, 1, 2, 3, 4, 5),
    )


# ── Helpers ──────────────────────────────────────────────────────────────────


class TestExtractTitle:
    def test_simple(self):
        assert extract_title("<html><title>Hello</title></html>") == "Hello"

    def test_first_occurrence_non_greedy(self):
        html = "<title>First</title><p>x</p><title>Second</title>"
        assert extract_title(html) == "First"

    def test_no_title(self):
        assert extract_title("<html><body>none</body></html>") == ""

    def test_empty_title(self):
        assert extract_title("<title></title>") == ""

    def test_title_in_headers_counts(self):
        assert extract_title("HTTP/1.1 200 OK\r\nX-Note: <title>hdr</title>\r\n\r\n") == "hdr"


class TestJoinParameters:
    def test_join(self):
        params = [Parameter("a", "1"), Parameter("b", "2")]
        assert join_parameters(params) == "a=1, b=2"

    def test_truncates_to_five_in_order(self):
        params = [Parameter(f"p{i}", str(i)) for i in range(8)]
        joined = join_parameters(params)
        assert joined == "p0=0, p1=1, p2=2, p3=3, p4=4"
        assert len(joined.split(", ")) == 5

    def test_custom_limit(self):
        params = [Parameter(f"p{i}", "") for i in range(4)]
        assert join_parameters(params, limit=2) == "p0=, p1="

    def test_empty(self):
        assert join_parameters([]) == ""


# ── create_bookmark ──────────────────────────────────────────────────────────


class TestCreateBookmark:
    def test_full_transaction(self, extractor):
        txn = Transaction(_request(), SERVICE,
                          _response("<html><title>Product 7</title></html>"))
        bm = extractor.create_bookmark(txn)
        assert bm.timestamp == "2024-01-02 03:04:05"
        assert bm.host == "shop.example.com"
        assert bm.url == "https://shop.example.com/products?id=7"
        assert bm.method == "GET"
        assert bm.status_code == "200"
        assert bm.mime_type == "HTML"
        assert bm.title == "Product 7"
        assert bm.protocol == "https"
        assert bm.path == "/products?id=7"
        assert bm.parameters == "id=7"
        assert bm.repeated is False

    def test_no_response_gives_empty_fields(self, extractor):
        bm = extractor.create_bookmark(Transaction(_request(), SERVICE))
        assert bm.status_code == ""
        assert bm.mime_type == ""
        assert bm.title == ""
        assert bm.transaction_ref.response is None

    def test_response_without_title(self, extractor):
        txn = Transaction(_request(), SERVICE, _response('{"a": 1}', content_type="application/json"))
        bm = extractor.create_bookmark(txn)
        assert bm.title == ""
        assert bm.mime_type == "JSON"

    def test_unparseable_status(self, extractor):
        bm = extractor.create_bookmark(Transaction(_request(), SERVICE, b"junk"))
        assert bm.status_code == ""

    def test_more_than_five_parameters(self, extractor):
        target = "/s?" + "&".join(f"k{i}=v{i}" for i in range(7))
        bm = extractor.create_bookmark(Transaction(_request(target), SERVICE))
        assert bm.parameters.split(", ") == ["k0=v0", "k1=v1", "k2=v2", "k3=v3", "k4=v4"]

    def test_repeated_flag(self, extractor):
        bm = extractor.create_bookmark(Transaction(_request(), SERVICE), repeated=True)
        assert bm.repeated is True

    def test_annotates_source_transaction(self, extractor):
        txn = Transaction(_request(), SERVICE)
        extractor.create_bookmark(txn)
        assert txn.highlight == "magenta"
        assert txn.comment == "[^]"

    def test_custom_annotation(self, tmp_path):
        ex = MetadataExtractor(TransactionAnalyzer(tmp_path), highlight_color="cyan", comment="[bm]")
        txn = Transaction(_request(), SERVICE)
        ex.create_bookmark(txn)
        assert (txn.highlight, txn.comment) == ("cyan", "[bm]")

    def test_custom_parameter_cap(self, tmp_path):
        ex = MetadataExtractor(TransactionAnalyzer(tmp_path), max_parameters=2)
        bm = ex.create_bookmark(Transaction(_request("/?a=1&b=2&c=3"), SERVICE))
        assert bm.parameters == "a=1, b=2"

    def test_annotation_failure_still_bookmarks(self, tmp_path):
        analyzer = TransactionAnalyzer(tmp_path)
        with patch.object(analyzer, "annotate", side_effect=RuntimeError("read-only")):
            bm = MetadataExtractor(analyzer).create_bookmark(
                Transaction(_request(), SERVICE, _response("<title>Kept</title>")))
        assert bm.title == "Kept"
        assert bm.transaction_ref.request == _request()

    def test_bookmark_is_immutable(self, extractor):
        bm = extractor.create_bookmark(Transaction(_request(), SERVICE))
        with pytest.raises(dataclasses.FrozenInstanceError):
            bm.title = "changed"

    def test_source_buffers_can_be_dropped(self, extractor):
        request, response = _request(), _response("<title>T</title>")
        txn = Transaction(request, SERVICE, response)
        bm = extractor.create_bookmark(txn)
        txn.request = b""
        txn.response = None
        assert bm.transaction_ref.request == request
        assert bm.transaction_ref.response == response
        assert bm.transaction_ref.http_service == SERVICE

    def test_unvalidated_host_passes_through(self, extractor):
        txn = Transaction(b"GET / HTTP/1.1\r\n\r\n", HttpService("not a host", 80))
        bm = extractor.create_bookmark(txn)
        assert bm.host == "not a host"
        assert bm.url == "http://not a host/"

    def test_default_clock_format(self, tmp_path):
        bm = MetadataExtractor(TransactionAnalyzer(tmp_path)).create_bookmark(
            Transaction(_request(), SERVICE))
        datetime.strptime(bm.timestamp, "%Y-%m-%d %H:%M:%S")
