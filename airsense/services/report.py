from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from airsense.clients.base import RemoteSync
from airsense.clients.remote import to_iso
from airsense.core.errors import NetworkError
from airsense.models.reading import Bucket
from airsense.repositories.base import BucketRepository
from airsense.services.reconciler import filter_buckets, local_tz, merge_or_fallback, resolve_range
from airsense.services.scheduling import PeriodicTask

logger = logging.getLogger(__name__)

SOURCE_LOCAL = "local"
SOURCE_MERGED = "merged"
SOURCE_CACHED = "cached"

DEFAULT_HISTORY_WINDOW = timedelta(days=30)


@dataclass(frozen=True)
class ReportResult:
    source: str
    start: datetime | None
    end: datetime | None
    buckets: list[Bucket] = field(default_factory=list)
    remote_error: str | None = None


class HistoryCache:
    """Last successful remote history per (device, from, to)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_range: dict[tuple[str, str, str], list[Bucket]] = {}

    def update(self, key: tuple[str, str, str], buckets: list[Bucket]) -> None:
        with self._lock:
            self._by_range[key] = list(buckets)

    def get(self, key: tuple[str, str, str]) -> list[Bucket] | None:
        with self._lock:
            cached = self._by_range.get(key)
            return list(cached) if cached is not None else None

    def clear(self) -> None:
        with self._lock:
            self._by_range.clear()


class ReportService:
    def __init__(
        self,
        *,
        store: BucketRepository,
        remote: RemoteSync | None = None,
        cache: HistoryCache | None = None,
        history_limit: int | None = None,
        history_window: timedelta = DEFAULT_HISTORY_WINDOW,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._remote = remote
        self._cache = cache
        self._history_limit = history_limit
        self._history_window = history_window
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    async def report(
        self,
        *,
        device_id: str | None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> ReportResult:
        tz = self._tz or local_tz()
        now = self._clock()
        start, end = resolve_range(start_date, end_date, tz=tz, now=now)
        local = self._store.load_all()

        remote: list[Bucket] | None = None
        remote_error: str | None = None
        from_cache = False
        if self._remote is not None and self._remote.enabled and device_id:
            from_iso, to_iso_ = self._history_bounds(start, end, tz=tz, now=now)
            key = (device_id, from_iso, to_iso_)
            try:
                remote = await self._remote.get_history(
                    device_id, from_iso, to_iso_, limit=self._history_limit
                )
                if self._cache is not None:
                    self._cache.update(key, remote)
            except NetworkError as e:
                remote_error = str(e)
                logger.warning("History fetch failed, using local data: %s", e)
                if self._cache is not None:
                    remote = self._cache.get(key)
                    from_cache = remote is not None

        merged, used_remote = merge_or_fallback(local, remote)
        if not used_remote:
            source = SOURCE_LOCAL
        elif from_cache:
            source = SOURCE_CACHED
        else:
            source = SOURCE_MERGED

        rows = filter_buckets(merged, start, end)
        logger.debug("Report %s..%s: %d rows (%s)", start, end, len(rows), source)
        return ReportResult(
            source=source,
            start=start,
            end=end,
            buckets=rows,
            remote_error=remote_error,
        )

    def _history_bounds(
        self,
        start: datetime | None,
        end: datetime | None,
        *,
        tz: tzinfo,
        now: datetime,
    ) -> tuple[str, str]:
        if start is None:
            first_day = (now - self._history_window).astimezone(tz).date()
            start = datetime.combine(first_day, time(0, 0, 0), tzinfo=tz)
        if end is None:
            end = datetime.combine(now.astimezone(tz).date(), time(23, 59, 59), tzinfo=tz)
        return (
            to_iso(start.astimezone(timezone.utc)),
            to_iso(end.astimezone(timezone.utc)),
        )


class ReportRefresher:
    """Re-runs today's report periodically so the history cache stays warm."""

    def __init__(
        self,
        *,
        service: ReportService,
        device_id_provider: Callable[[], str | None],
        interval_seconds: float = 30.0,
    ) -> None:
        self._service = service
        self._device_id_provider = device_id_provider
        self._task = PeriodicTask(interval_seconds, self.refresh, name="report-refresh")
        self.last_result: ReportResult | None = None

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    async def refresh(self) -> None:
        self.last_result = await self._service.report(device_id=self._device_id_provider())
