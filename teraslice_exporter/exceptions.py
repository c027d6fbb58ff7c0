"""
Exceptions raised by the Teraslice exporter.
"""


class TerasliceExporterError(Exception):
    """Base class for exporter errors."""


class ConfigurationError(TerasliceExporterError):
    """Missing or invalid process configuration."""


class FetchError(TerasliceExporterError):
    """A single Teraslice API resource could not be fetched or parsed."""

    def __init__(self, url: str, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"Error getting {url}: {cause}")


class CollectionError(TerasliceExporterError):
    """A collection cycle failed; the previous snapshot was kept."""

    def __init__(self, base_url: str, cause: Exception):
        self.base_url = base_url
        self.cause = cause
        self.url = getattr(cause, "url", base_url)
        super().__init__(f"Error collecting stats from {base_url}: {cause}")
