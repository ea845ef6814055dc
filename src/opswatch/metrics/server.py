"""HTTP endpoint for Prometheus scrapes and a liveness summary.

``/metrics`` serves the default registry. ``/health`` answers with a small
JSON document built from a status callback, so a probe can see which
adapters and workers are running rather than only that the process is up.
"""

import json
import threading
from collections.abc import Callable
from typing import Any
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import structlog
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

log = structlog.get_logger()

StatusProvider = Callable[[], dict[str, Any]]
StartResponse = Callable[[str, list[tuple[str, str]]], Any]
WSGIApp = Callable[[dict[str, Any], StartResponse], list[bytes]]

_lock = threading.Lock()
_running: "MetricsServer | None" = None


class _SilentHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: object) -> None:
        pass


def _respond(
    start_response: StartResponse, status: str, content_type: str, body: bytes
) -> list[bytes]:
    start_response(status, [("Content-Type", content_type)])
    return [body]


def make_app(status: StatusProvider | None = None) -> WSGIApp:
    """Build the WSGI app. ``status`` is called from the server thread on every /health."""

    def app(environ: dict[str, Any], start_response: StartResponse) -> list[bytes]:
        path = environ.get("PATH_INFO", "/")
        if path == "/metrics":
            return _respond(
                start_response, "200 OK", CONTENT_TYPE_LATEST, generate_latest(REGISTRY)
            )
        if path == "/health":
            body = {"status": "ok", **(status() if status else {})}
            return _respond(start_response, "200 OK", "application/json", json.dumps(body).encode())
        return _respond(start_response, "404 Not Found", "text/plain", b"Not Found")

    return app


class MetricsServer:
    """A metrics endpoint served from a daemon thread."""

    def __init__(self, server: WSGIServer, thread: threading.Thread):
        self.server = server
        self.thread = thread

    @property
    def port(self) -> int:
        return self.server.server_port

    def is_alive(self) -> bool:
        return self.thread.is_alive()

    def stop(self) -> None:
        self.server.shutdown()
        self.server.server_close()
        self.thread.join(timeout=5)
        log.info("Metrics server stopped", port=self.port)


def start_metrics_server(
    port: int = 9100, host: str = "0.0.0.0", status: StatusProvider | None = None
) -> MetricsServer:
    """Serve metrics in the background.

    Idempotent: while a server is running, later calls return it unchanged.

    Args:
        port: Port to listen on (0 picks a free one)
        host: Host to bind to
        status: Extra fields for the /health document
    """
    global _running
    with _lock:
        if _running is not None and _running.is_alive():
            log.debug("Metrics server already running", port=_running.port)
            return _running

        server = make_server(host, port, make_app(status), handler_class=_SilentHandler)

        def serve() -> None:
            try:
                server.serve_forever()
            except Exception:
                log.exception("Metrics server failed unexpectedly")

        thread = threading.Thread(target=serve, name="metrics-server", daemon=True)
        thread.start()
        _running = MetricsServer(server, thread)
        log.info("Metrics server listening", host=host, port=_running.port)
        return _running


def stop_metrics_server() -> None:
    global _running
    with _lock:
        if _running is None:
            return
        _running.stop()
        _running = None
