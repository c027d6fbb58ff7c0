"""
Ties the collector, the metrics projection and the HTTP server together and
runs the polling loop.
"""
import threading
import time
from typing import Optional

from .config import ExporterConfig
from .exceptions import CollectionError
from .logger import get_logger
from .metrics import TerasliceMetrics
from .server import CycleStatus, MetricsServer
from .stats import TerasliceStats


class TerasliceExporter:
    """
    Polls one Teraslice cluster on a fixed interval and keeps the metrics
    served by MetricsServer up to date.

    A failed cycle is logged and leaves the last good metrics in place.
    """

    def __init__(self, config: ExporterConfig,
                 stats: Optional[TerasliceStats] = None,
                 metrics: Optional[TerasliceMetrics] = None):
        self.config = config
        self.logger = get_logger("exporter")
        self.stats = stats or TerasliceStats(
            config.teraslice_url,
            display_url=config.display_url,
            timeout=config.request_timeout,
            jobs_query_size=config.jobs_query_size,
            execution_batch_size=config.execution_batch_size,
            execution_batch_delay=config.execution_batch_delay_ms,
        )
        self.metrics = metrics or TerasliceMetrics()
        self.status = CycleStatus()
        self.server = MetricsServer(
            self.metrics,
            port=config.port,
            metrics_path=config.metrics_path,
            status=self.status,
        )
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()

    def run_cycle(self) -> bool:
        """
        Collect and project once. Returns True if the metrics were replaced.
        A tick that arrives while the previous cycle is still running is skipped.
        """
        if not self._cycle_lock.acquire(blocking=False):
            self.logger.warning("Previous update still running, skipping this cycle")
            return False
        try:
            self.logger.debug("Updating Teraslice cluster information", url=self.config.teraslice_url)
            start = time.perf_counter()
            try:
                snapshot = self.stats.update()
            except CollectionError as e:
                self.logger.error("Teraslice stats collection failed", error=str(e), failed_url=e.url)
                self.status.record_failure(e)
                return False

            try:
                self.metrics.project(snapshot)
            except Exception as e:
                self.logger.exception("Failed to update metrics from snapshot", error=str(e))
                self.status.record_failure(e)
                return False

            self.status.record_success()
            self.logger.debug(
                "Teraslice metrics updated",
                cycle_seconds=round(time.perf_counter() - start, 3),
                query_durations=snapshot.query_duration.as_dict(),
                dataset_sizes=snapshot.dataset_sizes(),
            )
            return True
        finally:
            self._cycle_lock.release()

    def start(self):
        """Start the HTTP server."""
        self.server.start()

    def serve_forever(self):
        """Run a cycle now and then once per interval until stop() is called."""
        self.logger.info("Starting Teraslice exporter",
                         url=self.config.teraslice_url,
                         interval_seconds=self.config.query_interval)
        self.run_cycle()
        while not self._stop_event.wait(self.config.query_interval):
            self.run_cycle()

    def stop(self):
        """Stop polling and shut the server down."""
        self._stop_event.set()
        self.server.stop()
        self.stats.close()
        self.logger.info("Teraslice exporter stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
