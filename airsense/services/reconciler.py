"""Merge local and remote bucket sets into one report view.

On a key collision the remote bucket replaces the local one wholesale; the
backend aggregates across client sessions, so its copy is preferred. Partial
buckets are never averaged together.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from airsense.models.reading import Bucket


def local_tz() -> tzinfo:
    tz = datetime.now().astimezone().tzinfo
    if tz is None:
        return timezone.utc
    return tz


def reconcile(local: Iterable[Bucket], remote: Iterable[Bucket]) -> list[Bucket]:
    by_key: dict[int, Bucket] = {}
    for bucket in local:
        by_key[bucket.key] = bucket
    for bucket in remote:
        by_key[bucket.key] = bucket
    return sorted(by_key.values(), key=lambda b: b.key)


def merge_or_fallback(
    local: list[Bucket], remote: list[Bucket] | None
) -> tuple[list[Bucket], bool]:
    """Return the report rows and whether remote data took part.

    A failed fetch (``None``) and an empty successful fetch both mean
    local-only; an empty remote answer never overwrites local data.
    """
    if not remote:
        return sorted(local, key=lambda b: b.key), False
    return reconcile(local, remote), True


def resolve_range(
    start_date: date | None,
    end_date: date | None,
    *,
    tz: tzinfo | None = None,
    now: datetime | None = None,
) -> tuple[datetime | None, datetime | None]:
    tz = tz or local_tz()
    start = datetime.combine(start_date, time(0, 0, 0), tzinfo=tz) if start_date else None
    end = datetime.combine(end_date, time(23, 59, 59), tzinfo=tz) if end_date else None

    if start is None and end is None:
        today = (now.astimezone(tz) if now else datetime.now(tz)).date()
        start = datetime.combine(today, time(0, 0, 0), tzinfo=tz)
        end = start + timedelta(days=1)
    return start, end


def filter_buckets(
    buckets: Iterable[Bucket], start: datetime | None, end: datetime | None
) -> list[Bucket]:
    rows = []
    for bucket in buckets:
        if start is not None and bucket.bucket_start < start:
            continue
        if end is not None and bucket.bucket_end > end:
            continue
        rows.append(bucket)
    return rows
