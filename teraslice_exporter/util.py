"""
Small helpers shared by the collector and the metrics projection.
"""
import time
from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def extract_version_from_image_tag(image: str) -> str:
    """
    Return the version part of a container image reference.

    ``teraslice:v0.70.0`` and ``teraslice:v0.70.0_12345`` both give
    ``v0.70.0``; an image without a tag gives an empty string.
    """
    if not image or ':' not in image:
        return ''
    tag = image.split(':', 1)[1]
    return tag.split('_', 1)[0]


def pause(delay_ms: float) -> None:
    """Sleep for ``delay_ms`` milliseconds."""
    if delay_ms > 0:
        time.sleep(delay_ms / 1000.0)


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield successive lists of at most ``size`` items."""
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


def elapsed_ms(start: float) -> float:
    """Milliseconds since ``start``, a ``time.perf_counter()`` reading."""
    return round((time.perf_counter() - start) * 1000, 3)
