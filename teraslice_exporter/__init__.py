"""
Teraslice Exporter

Polls a Teraslice cluster master and exposes its state as Prometheus metrics:
- Execution controller worker and slice counts
- Execution resource requests, timestamps and status
- Worker image versions per execution
- Master node info and per query durations
"""

from .config import ExporterConfig
from .exceptions import CollectionError, ConfigurationError, FetchError, TerasliceExporterError
from .exporter import TerasliceExporter
from .logger import configure_logging, get_logger
from .metrics import TerasliceMetrics
from .models import ClusterSnapshot
from .server import MetricsServer
from .stats import TerasliceStats
from .util import extract_version_from_image_tag

__version__ = "1.0.0"
__all__ = [
    "ExporterConfig",
    "CollectionError",
    "ConfigurationError",
    "FetchError",
    "TerasliceExporterError",
    "TerasliceExporter",
    "configure_logging",
    "get_logger",
    "TerasliceMetrics",
    "ClusterSnapshot",
    "MetricsServer",
    "TerasliceStats",
    "extract_version_from_image_tag",
]
