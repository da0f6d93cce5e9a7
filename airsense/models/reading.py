from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def to_epoch_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def from_epoch_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


@dataclass(frozen=True)
class Reading:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class Bucket:
    """Statistics over one half-open window ``[bucket_start, bucket_end)``.

    ``raw_values`` holds the absorbed values when they are known; buckets
    pulled from the remote carry only the summary and leave it empty.
    """

    bucket_start: datetime
    bucket_end: datetime
    avg_value: float
    min_value: float
    max_value: float
    count: int
    raw_values: tuple[float, ...] = field(default=())

    @property
    def key(self) -> int:
        return to_epoch_ms(self.bucket_start)

    @classmethod
    def from_values(cls, start_ms: int, interval_ms: int, values: list[float]) -> Bucket:
        if not values:
            raise ValueError("a bucket needs at least one value")
        return cls(
            bucket_start=from_epoch_ms(start_ms),
            bucket_end=from_epoch_ms(start_ms + interval_ms),
            avg_value=sum(values) / len(values),
            min_value=min(values),
            max_value=max(values),
            count=len(values),
            raw_values=tuple(values),
        )


@dataclass(frozen=True)
class StorageStats:
    total_buckets: int
    oldest: datetime | None
    newest: datetime | None
    size_estimate: int
