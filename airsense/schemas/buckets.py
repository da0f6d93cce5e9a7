from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from airsense.models.reading import Bucket


def _to_utc(v: datetime) -> datetime:
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class StoredBucket(BaseModel):
    """Persisted layout of one finalized bucket."""

    bucket_start: datetime
    bucket_end: datetime
    avg_value: float
    min_value: float
    max_value: float
    count: int = Field(ge=1)
    raw_values: list[float] = Field(default_factory=list)

    @field_validator("bucket_start", "bucket_end")
    @classmethod
    def _times_to_utc(cls, v: datetime) -> datetime:
        return _to_utc(v)

    @classmethod
    def from_bucket(cls, bucket: Bucket) -> StoredBucket:
        return cls(
            bucket_start=bucket.bucket_start,
            bucket_end=bucket.bucket_end,
            avg_value=bucket.avg_value,
            min_value=bucket.min_value,
            max_value=bucket.max_value,
            count=bucket.count,
            raw_values=list(bucket.raw_values),
        )

    def to_bucket(self) -> Bucket:
        return Bucket(
            bucket_start=self.bucket_start,
            bucket_end=self.bucket_end,
            avg_value=self.avg_value,
            min_value=self.min_value,
            max_value=self.max_value,
            count=self.count,
            raw_values=tuple(self.raw_values),
        )


stored_collection = TypeAdapter(list[StoredBucket])


class BucketRead(BaseModel):
    bucket_start: datetime
    bucket_end: datetime
    avg_value: float
    min_value: float
    max_value: float
    count: int = Field(ge=1)


class StorageStatsRead(BaseModel):
    total_buckets: int = Field(ge=0)
    oldest: datetime | None = None
    newest: datetime | None = None
    size_estimate: int = Field(ge=0)


class ReportRead(BaseModel):
    source: str
    start: datetime | None = None
    end: datetime | None = None
    remote_error: str | None = None
    buckets: list[BucketRead] = Field(default_factory=list)
