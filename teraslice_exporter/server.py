"""
HTTP server exposing the metrics, a pointer page and a health check.
"""
import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import structlog
from prometheus_client import CONTENT_TYPE_LATEST

from .metrics import TerasliceMetrics

logger = structlog.get_logger(__name__)


class HealthStatus:
    """Health status constants."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    STARTING = "starting"


class CycleStatus:
    """Outcome of the most recent collection cycles, reported on /health."""

    def __init__(self):
        self._lock = threading.Lock()
        self.last_success_time: Optional[float] = None
        self.last_failure_time: Optional[float] = None
        self.last_error: Optional[str] = None
        self.consecutive_failures = 0

    def record_success(self):
        with self._lock:
            self.last_success_time = time.time()
            self.last_error = None
            self.consecutive_failures = 0

    def record_failure(self, error: Exception):
        with self._lock:
            self.last_failure_time = time.time()
            self.last_error = str(error)
            self.consecutive_failures += 1

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            if self.last_error is not None:
                status = HealthStatus.UNHEALTHY
            elif self.last_success_time is None:
                status = HealthStatus.STARTING
            else:
                status = HealthStatus.HEALTHY
            return {
                "status": status,
                "timestamp": time.time(),
                "last_success": self.last_success_time,
                "last_failure": self.last_failure_time,
                "consecutive_failures": self.consecutive_failures,
                "error": self.last_error,
            }


class MetricsServer:
    """Serves ``metrics_path``, ``/`` and ``/health`` on a background thread."""

    def __init__(self, metrics: TerasliceMetrics, port: int = 3000,
                 metrics_path: str = "/metrics", status: Optional[CycleStatus] = None,
                 host: str = ""):
        self.metrics = metrics
        self.port = port
        self.host = host
        self.metrics_path = metrics_path
        self.status = status or CycleStatus()
        self.server = None
        self.server_thread = None

    @property
    def server_port(self) -> int:
        """Port actually bound, useful when started with port 0."""
        return self.server.server_address[1] if self.server else self.port

    def start(self):
        """Start the HTTP server."""
        if self.server is None:
            handler = self._create_handler()
            self.server = ThreadingHTTPServer((self.host, self.port), handler)
            self.server_thread = threading.Thread(target=self.server.serve_forever,
                                                  name="metrics-server", daemon=True)
            self.server_thread.start()
            logger.info("HTTP server listening",
                        port=self.server_port, metrics_path=self.metrics_path)

    def stop(self):
        """Stop the HTTP server."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            self.server_thread = None

    def _create_handler(self):
        """Create HTTP request handler."""
        server = self

        class MetricsHandler(BaseHTTPRequestHandler):
            def _send(self, status_code: int, content_type: str, body: bytes):
                self.send_response(status_code)
                self.send_header('Content-Type', content_type)
                self.send_header('Content-Length', str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def do_GET(self):
                path = urlparse(self.path).path
                if path == server.metrics_path:
                    self._send(200, CONTENT_TYPE_LATEST, server.metrics.exposition())

                elif path == '/':
                    message = f"See the '{server.metrics_path}' endpoint for the teraslice exporter."
                    self._send(200, 'text/plain; charset=utf-8', message.encode())

                elif path == '/health':
                    health = server.status.to_dict()
                    status_code = 200 if health["status"] == HealthStatus.HEALTHY else 503
                    self._send(status_code, 'application/json', json.dumps(health).encode())

                else:
                    self._send(404, 'text/plain; charset=utf-8', b'Not Found')

            def log_message(self, format, *args):
                logger.debug("HTTP request", client=self.client_address[0], request=format % args)

        return MetricsHandler
