"""
Example: collect once from a Teraslice cluster and print the metrics.

    TERASLICE_URL=http://localhost:5678 python examples/one_shot.py
"""
import sys

from teraslice_exporter import (
    CollectionError,
    ExporterConfig,
    TerasliceMetrics,
    TerasliceStats,
    configure_logging,
)


def main():
    config = ExporterConfig(log_format="console")
    logger = configure_logging(config).get_logger("one_shot")

    stats = TerasliceStats(
        config.teraslice_url,
        display_url=config.display_url,
        timeout=config.request_timeout,
    )
    metrics = TerasliceMetrics()

    try:
        snapshot = stats.update()
    except CollectionError as e:
        logger.error("Collection failed", error=str(e))
        return 1
    finally:
        stats.close()

    metrics.project(snapshot)
    logger.info("Collected cluster stats", **snapshot.dataset_sizes())
    sys.stdout.write(metrics.exposition().decode())
    return 0


if __name__ == "__main__":
    sys.exit(main())
