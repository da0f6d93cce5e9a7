"""Chunk -> reading -> bucket -> (local store, remote mirror).

Nothing in here may stop later chunks from being processed: parse misses are
silent, storage write failures are logged, remote pushes run as detached
tasks whose failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone

from airsense.clients.base import RemoteSync
from airsense.core.errors import NetworkError, StorageWriteError
from airsense.models.reading import Bucket, Reading
from airsense.repositories.base import BucketRepository
from airsense.services.bucketer import Bucketer
from airsense.services.parser import parse_chunk

logger = logging.getLogger(__name__)

DEFAULT_LIVE_READINGS_MAX = 500


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class LiveFeed:
    """Most recent readings for display only; oldest entries drop first."""

    def __init__(self, *, max_size: int = DEFAULT_LIVE_READINGS_MAX) -> None:
        self._readings: deque[Reading] = deque(maxlen=max_size)

    def append(self, reading: Reading) -> None:
        self._readings.append(reading)

    @property
    def latest(self) -> Reading | None:
        return self._readings[-1] if self._readings else None

    @property
    def max_size(self) -> int:
        return self._readings.maxlen or 0

    def snapshot(self) -> list[Reading]:
        return list(self._readings)

    def clear(self) -> None:
        self._readings.clear()

    def __len__(self) -> int:
        return len(self._readings)


class IngestionPipeline:
    def __init__(
        self,
        *,
        bucketer: Bucketer,
        store: BucketRepository,
        remote: RemoteSync | None = None,
        live: LiveFeed | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._bucketer = bucketer
        self._store = store
        self._remote = remote
        self._live = live if live is not None else LiveFeed()
        self._clock = clock
        self._device_id: str | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self.last_data_at: datetime | None = None
        self.last_error: str | None = None

    @property
    def live(self) -> LiveFeed:
        return self._live

    @property
    def bucketer(self) -> Bucketer:
        return self._bucketer

    @property
    def device_id(self) -> str | None:
        return self._device_id

    @property
    def pending_pushes(self) -> int:
        return len(self._pending)

    def bind_device(self, device_id: str | None) -> None:
        self._device_id = device_id

    def on_chunk(self, text: str, received_at: datetime | None = None) -> float | None:
        now = received_at or self._clock()
        self.last_data_at = now

        value = parse_chunk(text)
        if value is None:
            logger.debug("Chunk without a PM2.5 reading: %r", text[:80])
            return None

        reading = Reading(timestamp=now, value=value)
        self._live.append(reading)
        try:
            finalized = self._bucketer.ingest(reading)
        except Exception:
            logger.exception("Bucketing failed for reading %.1f", value)
            return value
        if finalized is not None:
            self._dispatch(finalized)
        return value

    def flush(self) -> Bucket | None:
        finalized = self._bucketer.flush()
        if finalized is not None:
            self._dispatch(finalized)
        return finalized

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _dispatch(self, bucket: Bucket) -> None:
        try:
            self._store.upsert(bucket)
            self.last_error = None
        except StorageWriteError as e:
            self.last_error = str(e)
            logger.error("Could not persist bucket %s: %s", bucket.bucket_start.isoformat(), e)
        except Exception as e:  # noqa: BLE001 - a store bug must not stop ingestion
            self.last_error = str(e)
            logger.exception("Unexpected error persisting bucket %s", bucket.bucket_start.isoformat())
        self._schedule_push(bucket)

    def _schedule_push(self, bucket: Bucket) -> None:
        if self._remote is None or not self._remote.enabled:
            return
        device_id = self._device_id
        if not device_id:
            logger.debug("No device bound, remote push skipped")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, remote push skipped")
            return
        task = loop.create_task(self._push(bucket, device_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _push(self, bucket: Bucket, device_id: str) -> None:
        if self._remote is None:
            return
        try:
            await self._remote.ingest(bucket, device_id)
        except NetworkError as e:
            logger.warning(
                "Remote push of bucket %s dropped: %s", bucket.bucket_start.isoformat(), e
            )
        except Exception:
            logger.exception("Unexpected error pushing bucket %s", bucket.bucket_start.isoformat())
