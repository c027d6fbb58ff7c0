"""Process entrypoint for the Teraslice exporter."""
import sys

from .config import ExporterConfig
from .exceptions import ConfigurationError
from .exporter import TerasliceExporter
from .logger import configure_logging


def main() -> int:
    """Read configuration from the environment and serve metrics until interrupted."""
    try:
        config = ExporterConfig()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logger = configure_logging(config).get_logger("main")
    logger.debug("Configuration loaded", **config.to_dict())

    exporter = TerasliceExporter(config)
    try:
        exporter.start()
        exporter.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        exporter.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
