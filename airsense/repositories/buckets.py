"""Durable store of finalized buckets.

The whole collection lives under one key and is rewritten on every write.
The read-modify-write in ``upsert`` is not guarded against other processes;
exactly one in-process writer is assumed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from airsense.core.errors import StorageWriteError
from airsense.models.reading import Bucket, StorageStats
from airsense.repositories.base import KeyValueStore
from airsense.schemas.buckets import StoredBucket, stored_collection

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "airsense_readings"
DEFAULT_RETENTION = timedelta(days=30)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class LocalBucketStore:
    def __init__(
        self,
        *,
        kv: KeyValueStore,
        key: str = DEFAULT_STORAGE_KEY,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._kv = kv
        self._key = key
        self._retention = retention
        self._clock = clock

    def load_all(self) -> list[Bucket]:
        try:
            raw = self._kv.get(self._key)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Storage read failed, treating as empty: %s", e)
            return []
        if not raw:
            logger.debug("No stored buckets found")
            return []
        try:
            records = stored_collection.validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Stored buckets are unreadable, treating as empty (%d errors)",
                e.error_count(),
            )
            return []

        buckets = [r.to_bucket() for r in records]
        buckets.sort(key=lambda b: b.key)
        logger.debug("Loaded %d buckets", len(buckets))
        return buckets

    def upsert(self, bucket: Bucket) -> None:
        existing = self.load_all()
        for i, current in enumerate(existing):
            if current.key == bucket.key:
                existing[i] = bucket
                logger.debug("Replaced bucket at %s", bucket.bucket_start.isoformat())
                break
        else:
            existing.append(bucket)
            logger.debug("Appended bucket at %s", bucket.bucket_start.isoformat())
        self._save(existing, key=bucket.key)

    def upsert_many(self, buckets: list[Bucket]) -> None:
        merged: dict[int, Bucket] = {b.key: b for b in self.load_all()}
        for bucket in buckets:
            merged[bucket.key] = bucket
        self._save(list(merged.values()))
        logger.debug("Upserted %d buckets", len(buckets))

    def clear(self) -> None:
        try:
            self._kv.remove(self._key)
        except OSError as e:
            raise StorageWriteError(f"Could not clear stored buckets: {e}") from e
        logger.info("Cleared all stored buckets")

    def stats(self) -> StorageStats:
        buckets = self.load_all()
        return StorageStats(
            total_buckets=len(buckets),
            oldest=buckets[0].bucket_start if buckets else None,
            newest=buckets[-1].bucket_start if buckets else None,
            size_estimate=len(self._serialize(buckets)),
        )

    def _prune(self, buckets: list[Bucket]) -> list[Bucket]:
        cutoff = self._clock() - self._retention
        kept = [b for b in buckets if b.bucket_start >= cutoff]
        dropped = len(buckets) - len(kept)
        if dropped:
            logger.info("Pruned %d buckets older than %s", dropped, cutoff.isoformat())
        return kept

    def _save(self, buckets: list[Bucket], *, key: int | None = None) -> None:
        kept = self._prune(buckets)
        kept.sort(key=lambda b: b.key)
        try:
            self._kv.set(self._key, self._serialize(kept).decode("utf-8"))
        except OSError as e:
            raise StorageWriteError(f"Could not persist buckets: {e}", key=key) from e

    @staticmethod
    def _serialize(buckets: list[Bucket]) -> bytes:
        return stored_collection.dump_json([StoredBucket.from_bucket(b) for b in buckets])
