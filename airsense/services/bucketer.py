from __future__ import annotations

import logging
from dataclasses import dataclass, field

from airsense.models.reading import Bucket, Reading, to_epoch_ms

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 5 * 60 * 1000


@dataclass
class OpenBucket:
    bucket_start_ms: int
    values: list[float] = field(default_factory=list)


class Bucketer:
    """Assigns readings to fixed windows and finalizes a window once it is left.

    At most one window is open. A reading whose window differs from the open
    one finalizes the open window, even if the new window lies in the past.
    """

    def __init__(self, *, interval_ms: int = DEFAULT_INTERVAL_MS) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._interval_ms = interval_ms
        self._open: OpenBucket | None = None

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def open_bucket(self) -> OpenBucket | None:
        return self._open

    def bucket_start_for(self, reading: Reading) -> int:
        ts = to_epoch_ms(reading.timestamp)
        return (ts // self._interval_ms) * self._interval_ms

    def ingest(self, reading: Reading) -> Bucket | None:
        candidate = self.bucket_start_for(reading)
        if self._open is None:
            self._open = OpenBucket(candidate, [reading.value])
            return None
        if candidate == self._open.bucket_start_ms:
            self._open.values.append(reading.value)
            return None

        finalized = self._finalize(self._open)
        self._open = OpenBucket(candidate, [reading.value])
        return finalized

    def flush(self) -> Bucket | None:
        if self._open is None:
            return None
        current, self._open = self._open, None
        if not current.values:
            return None
        return self._finalize(current)

    def _finalize(self, open_bucket: OpenBucket) -> Bucket:
        bucket = Bucket.from_values(
            open_bucket.bucket_start_ms, self._interval_ms, open_bucket.values
        )
        logger.info(
            "Finalized bucket %s: n=%d avg=%.2f min=%.1f max=%.1f",
            bucket.bucket_start.isoformat(),
            bucket.count,
            bucket.avg_value,
            bucket.min_value,
            bucket.max_value,
        )
        return bucket
