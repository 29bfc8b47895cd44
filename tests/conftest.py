"""Shared fixtures: a local HTTP echo service."""

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


class _EchoHandler(BaseHTTPRequestHandler):
    """Answers every GET with its path as the page title and its headers in the body."""

    def do_GET(self):
        headers = "".join(f"{k}: {v}\n" for k, v in self.headers.items())
        body = f"<html><title>echo {self.path}</title><pre>\n{headers}</pre></html>".encode()
        self.send_response(200)
        self.send_header("Content-Type", "text/html")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def echo_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _EchoHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
