"""Pytest configuration and fixtures."""

import sys
import threading
import time
from email.utils import formatdate
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


class _FileHandler(BaseHTTPRequestHandler):
    """Serves ``server.files`` entries for HEAD and GET.

    Entry keys: ``body`` (bytes), ``headers`` (list of name/value pairs, repeats
    allowed), ``last_modified`` (epoch seconds), ``omit_length`` (bool),
    ``status`` (int), ``delay`` (seconds before responding).
    """

    server: "FileServer"

    def log_message(self, format: str, *args: Any) -> None:
        return None

    def do_HEAD(self) -> None:
        self._serve(include_body=False)

    def do_GET(self) -> None:
        self._serve(include_body=True)

    def _serve(self, include_body: bool) -> None:
        headers = {name: value for name, value in self.headers.items()}
        self.server.requests.append((self.command, self.path, headers))
        path = self.path.lstrip("/")

        if path.startswith("private/") and headers.get("Authorization") != "Bearer test-token":
            self._empty(401)
            return

        entry = self.server.files.get(path)
        if entry is None:
            self._empty(404)
            return

        delay = entry.get("delay")
        if delay:
            time.sleep(delay)

        body: bytes = entry.get("body", b"")
        self.send_response(entry.get("status", 200))
        for name, value in entry.get("headers", []):
            self.send_header(name, value)
        if not entry.get("omit_length"):
            self.send_header("Content-Length", str(len(body)))
        if "last_modified" in entry:
            self.send_header("Last-Modified", formatdate(entry["last_modified"], usegmt=True))
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def _empty(self, status: int) -> None:
        self.send_response(status)
        self.send_header("Content-Length", "0")
        self.end_headers()


class FileServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), _FileHandler)
        self.files: Dict[str, Dict[str, Any]] = {}
        self.requests: List[Tuple[str, str, Dict[str, str]]] = []

    @property
    def url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}"


@pytest.fixture
def http_server() -> Iterator[FileServer]:
    """Local HTTP server standing in for a published file endpoint."""
    server = FileServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
