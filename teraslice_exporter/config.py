"""
Configuration management for the Teraslice exporter.
Everything is read from the environment, with the dataclass fields as defaults.
"""
import os
from dataclasses import dataclass
from typing import Optional, Dict, Any
from urllib.parse import urlparse

from .exceptions import ConfigurationError


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("", "0", "false", "no")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"The {name} environment variable must be an integer, got {value!r}")


def validate_url(url: str, setting: str) -> str:
    """Return ``url`` unchanged if it is an absolute http(s) URL."""
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(
            f"The {setting} environment variable must be a valid URL to the "
            f"root of your teraslice instance, got {url!r}"
        )
    return url


@dataclass
class ExporterConfig:
    """Configuration for the exporter process."""

    # Teraslice cluster
    teraslice_url: Optional[str] = None
    display_url: Optional[str] = None
    request_timeout_ms: int = 10000
    jobs_query_size: int = 200
    execution_batch_size: int = 10
    execution_batch_delay_ms: int = 25

    # Polling and HTTP exposition
    query_delay_ms: int = 30000  # ms
    port: int = 3000
    metrics_path: str = "/metrics"

    # Logging Configuration
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    log_file: Optional[str] = None

    def __post_init__(self):
        """Apply environment overrides and validate."""
        self.teraslice_url = os.getenv("TERASLICE_URL", self.teraslice_url)
        self.display_url = os.getenv("TERASLICE_DISPLAY_URL", self.display_url)
        self.request_timeout_ms = _env_int("TERASLICE_REQUEST_TIMEOUT", self.request_timeout_ms)
        self.jobs_query_size = _env_int("TERASLICE_JOBS_QUERY_SIZE", self.jobs_query_size)
        self.execution_batch_size = _env_int("TERASLICE_EXECUTION_BATCH_SIZE", self.execution_batch_size)
        self.execution_batch_delay_ms = _env_int("TERASLICE_EXECUTION_BATCH_DELAY",
                                                 self.execution_batch_delay_ms)
        self.query_delay_ms = _env_int("TERASLICE_QUERY_DELAY", self.query_delay_ms)
        self.port = _env_int("PORT", self.port)
        self.debug = _env_flag("DEBUG", self.debug)
        self.log_level = os.getenv("LOG_LEVEL", self.log_level)
        self.log_format = os.getenv("LOG_FORMAT", self.log_format)
        self.log_file = os.getenv("LOG_FILE", self.log_file)

        if not self.teraslice_url:
            raise ConfigurationError(
                "The TERASLICE_URL environment variable must be a valid URL to "
                "the root of your teraslice instance."
            )
        validate_url(self.teraslice_url, "TERASLICE_URL")
        if self.display_url:
            validate_url(self.display_url, "TERASLICE_DISPLAY_URL")
        else:
            self.display_url = self.teraslice_url

        if self.execution_batch_size < 1:
            raise ConfigurationError("TERASLICE_EXECUTION_BATCH_SIZE must be at least 1")
        if self.query_delay_ms < 1:
            raise ConfigurationError("TERASLICE_QUERY_DELAY must be a positive number of milliseconds")
        if self.request_timeout_ms < 1:
            raise ConfigurationError("TERASLICE_REQUEST_TIMEOUT must be a positive number of milliseconds")

        if self.debug:
            self.log_level = "DEBUG"

    @property
    def query_interval(self) -> float:
        """Polling interval in seconds."""
        return self.query_delay_ms / 1000.0

    @property
    def request_timeout(self) -> float:
        """Per request timeout in seconds."""
        return self.request_timeout_ms / 1000.0

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ExporterConfig':
        """Create config from dictionary."""
        return cls(**config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            'teraslice_url': self.teraslice_url,
            'display_url': self.display_url,
            'request_timeout_ms': self.request_timeout_ms,
            'jobs_query_size': self.jobs_query_size,
            'execution_batch_size': self.execution_batch_size,
            'execution_batch_delay_ms': self.execution_batch_delay_ms,
            'query_delay_ms': self.query_delay_ms,
            'port': self.port,
            'metrics_path': self.metrics_path,
            'debug': self.debug,
            'log_level': self.log_level,
            'log_format': self.log_format,
            'log_file': self.log_file,
        }
