"""Shared fixtures: console reset, push events, a slurmrestd stub."""

from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from slurmci.ui.console import Console, set_console


@pytest.fixture(autouse=True)
def console():
    """Fresh non-debug console per test."""
    c = Console(debug=False)
    set_console(c)
    return c


@pytest.fixture
def make_payload():
    """Factory for GitHub push payloads (as dict)."""

    def _make(ref: str = "refs/heads/main", name: str = "hello", owner: str = "octo") -> dict:
        return {
            "ref": ref,
            "before": "0" * 40,
            "after": "a1b2c3d4e5f6a7b8c9d0a1b2c3d4e5f6a7b8c9d0",
            "created": False,
            "deleted": False,
            "forced": False,
            "compare": f"https://github.com/{owner}/{name}/compare/x...y",
            "commits": [],
            "pusher": {"name": "octocat", "email": "octocat@example.com"},
            "repository": {
                "name": name,
                "full_name": f"{owner}/{name}",
                "clone_url": f"https://github.com/{owner}/{name}.git",
                "default_branch": "main",
            },
        }

    return _make


class SlurmStub:
    """Records submissions; `responder(body) -> (status, json_body)` decides the answer."""

    def __init__(self):
        self.url = ""
        self.requests = []
        self.lock = threading.Lock()
        self.responder = lambda body: (200, {"job_id": 42})

    @property
    def scripts(self) -> list[str]:
        return [r["body"]["job"]["script"] for r in self.requests]


@pytest.fixture
def slurm_stub():
    """A threaded HTTP server standing in for slurmrestd."""
    stub = SlurmStub()

    class Handler(BaseHTTPRequestHandler):
        def do_POST(self):
            length = int(self.headers.get("Content-Length", 0))
            body = json.loads(self.rfile.read(length) or b"{}")
            with stub.lock:
                stub.requests.append({"path": self.path, "headers": self.headers, "body": body})
            status, payload = stub.responder(body)
            data = json.dumps(payload).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def log_message(self, format, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    stub.url = f"http://127.0.0.1:{server.server_address[1]}"
    yield stub
    server.shutdown()
    server.server_close()
