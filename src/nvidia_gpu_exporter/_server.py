"""HTTP exposition: /metrics and /gpustat over a threaded stdlib server."""

from __future__ import annotations

import logging
from collections.abc import Callable
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

from nvidia_gpu_exporter._collector import Collector
from nvidia_gpu_exporter._config import ExporterConfig
from nvidia_gpu_exporter._registry import CONTENT_TYPE

logger = logging.getLogger("nvidia_gpu_exporter.server")

TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


class ExporterHTTPServer(ThreadingHTTPServer):
    """Threaded HTTP server carrying the shared collector."""

    daemon_threads = True

    def __init__(self, address: tuple[str, int], collector: Collector) -> None:
        self.collector = collector
        super().__init__(address, ExporterRequestHandler)


class ExporterRequestHandler(BaseHTTPRequestHandler):
    """Routes GET /metrics and GET /gpustat; everything else is a 404."""

    server: ExporterHTTPServer
    server_version = "nvidia-gpu-exporter"

    def do_GET(self) -> None:  # noqa: N802
        path = urlsplit(self.path).path
        if path == "/metrics":
            self._serve(self.server.collector.scrape, CONTENT_TYPE)
        elif path == "/gpustat":
            self._serve(lambda: self.server.collector.gpustat().encode("utf-8"), TEXT_CONTENT_TYPE)
        else:
            self._not_found()

    def _not_found(self) -> None:
        self._send(HTTPStatus.NOT_FOUND, TEXT_CONTENT_TYPE, b"Not found")

    do_POST = do_PUT = do_PATCH = do_DELETE = do_OPTIONS = _not_found

    def do_HEAD(self) -> None:  # noqa: N802
        self._send(HTTPStatus.NOT_FOUND, TEXT_CONTENT_TYPE, b"Not found", include_body=False)

    def _serve(self, produce: Callable[[], bytes], content_type: str) -> None:
        try:
            body = produce()
        except Exception:  # noqa: BLE001
            logger.exception("Sampling pass failed for %s", self.path)
            self._send(HTTPStatus.INTERNAL_SERVER_ERROR, TEXT_CONTENT_TYPE, b"Internal server error")
            return
        self._send(HTTPStatus.OK, content_type, body)

    def _send(
        self,
        status: HTTPStatus,
        content_type: str,
        body: bytes,
        *,
        include_body: bool = True,
    ) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if include_body:
            self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


def make_server(config: ExporterConfig, collector: Collector) -> ExporterHTTPServer:
    """Bind the exporter to ``config.host:config.port`` without serving yet."""
    return ExporterHTTPServer((config.host, config.port), collector)
