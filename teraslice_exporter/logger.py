"""
Structured logging for the exporter, JSON by default so it can be shipped to Loki.
"""
import logging
import structlog
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

from .config import ExporterConfig


class ExporterLogger:
    """Configures structlog and the stdlib root logger from an ExporterConfig."""

    def __init__(self, config: ExporterConfig):
        self.config = config
        self._logger = None
        self._setup_logging()

    def _setup_logging(self):
        """Setup structured logging."""
        if self.config.log_format == "console":
            renderer = structlog.dev.ConsoleRenderer()
        else:
            renderer = structlog.processors.JSONRenderer()

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                renderer,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=level,
        )
        logging.getLogger().setLevel(level)

        if self.config.log_file:
            file_handler = logging.FileHandler(self.config.log_file)
            file_handler.setFormatter(jsonlogger.JsonFormatter(
                '%(asctime)s %(name)s %(levelname)s %(message)s'
            ))
            logging.getLogger().addHandler(file_handler)

        # urllib3 logs every connection at debug, which drowns the exporter's own output
        logging.getLogger("urllib3").setLevel(max(level, logging.INFO))

        self._logger = structlog.get_logger("teraslice_exporter").bind(
            teraslice_url=self.config.display_url,
        )

    def get_logger(self, name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
        """Get a bound logger with optional component context."""
        if name:
            return self._logger.bind(component=name)
        return self._logger


_default_logger = None


def configure_logging(config: ExporterConfig) -> ExporterLogger:
    """Configure process logging and remember it as the default."""
    global _default_logger
    _default_logger = ExporterLogger(config)
    return _default_logger


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a logger. Falls back to an unconfigured structlog logger if
    configure_logging has not run yet (e.g. under test).
    """
    if _default_logger is None:
        return structlog.get_logger(name or "teraslice_exporter")
    return _default_logger.get_logger(name)
