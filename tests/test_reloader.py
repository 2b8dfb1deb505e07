import logging
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from configreloader.reloader import Reloader

LOGGER = "configreloader.reloader"


def _serve(status, body=b""):
    hits = []

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            hits.append(self.path)
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server, hits


@pytest.fixture
def ok_server():
    server, hits = _serve(200)
    yield server.server_address[1], hits
    server.shutdown()
    server.server_close()


@pytest.fixture
def failing_server():
    server, hits = _serve(500, b"boom")
    yield server.server_address[1], hits
    server.shutdown()
    server.server_close()


def test_null_reloader_does_nothing(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER)
    Reloader().reload_configuration()
    assert "Not reloading fluentd" in caplog.text


def test_reloader_calls(ok_server, caplog):
    port, hits = ok_server
    caplog.set_level(logging.INFO, logger=LOGGER)
    reloader = Reloader(port)

    for _ in range(3):
        reloader.reload_configuration()

    records = [r for r in caplog.records if r.name == LOGGER]
    reload_messages = [
        r for r in records if "Reloading fluentd configuration" in r.getMessage()
    ]
    assert len(reload_messages) == 3
    assert [r for r in records if r.levelno >= logging.ERROR] == []
    assert hits == ["/api/config.gracefulReload"] * 3


def test_reloader_logs_bad_status(failing_server, caplog):
    port, hits = failing_server
    caplog.set_level(logging.INFO, logger=LOGGER)

    Reloader(port).reload_configuration()

    assert len(hits) == 1
    assert "statuscode 500" in caplog.text
    assert "boom" in caplog.text


def test_reloader_logs_connection_failure(caplog):
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    caplog.set_level(logging.INFO, logger=LOGGER)

    Reloader(port, timeout=2).reload_configuration()

    assert "request failed" in caplog.text