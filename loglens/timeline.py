"""Timeline histogram: count matching records per fixed-width time bucket."""

import logging
from collections import Counter

from loglens.errors import InvalidArgument
from loglens.filters import build_filter
from loglens.models import TimelinePoint, TimelineRequest

logger = logging.getLogger(__name__)


def bucket_start(timestamp: int, bucket_ms: int) -> int:
    """Align a timestamp down to its bucket boundary (floor, also for negatives)."""
    return (timestamp // bucket_ms) * bucket_ms


def _validate_bucket(bucket_ms) -> None:
    if isinstance(bucket_ms, bool) or not isinstance(bucket_ms, int):
        raise InvalidArgument("bucketMs must be an integer")
    if bucket_ms <= 0:
        raise InvalidArgument("bucketMs must be positive")


def bucketize(request: TimelineRequest, store) -> list[TimelinePoint]:
    """Return one point per non-empty bucket, ascending by bucket start."""
    _validate_bucket(request.bucket_ms)
    predicate = build_filter(request.filters)

    counts: Counter = Counter()
    for record in store.scan():
        if predicate(record):
            counts[bucket_start(record.timestamp, request.bucket_ms)] += 1

    points = [TimelinePoint(bucket_start=start, count=counts[start]) for start in sorted(counts)]
    logger.debug("Timeline produced %d buckets of %d ms", len(points), request.bucket_ms)
    return points


def fill_gaps(points: list[TimelinePoint], bucket_ms: int) -> list[TimelinePoint]:
    """Turn a sparse timeline into a dense one with zero-count buckets in between."""
    _validate_bucket(bucket_ms)
    if not points:
        return []
    counts = {p.bucket_start: p.count for p in points}
    first = points[0].bucket_start
    last = points[-1].bucket_start
    return [
        TimelinePoint(bucket_start=start, count=counts.get(start, 0))
        for start in range(first, last + bucket_ms, bucket_ms)
    ]
