from __future__ import annotations

import json
from datetime import timedelta

import pytest

from airsense.core.errors import StorageWriteError
from airsense.repositories.buckets import LocalBucketStore
from airsense.repositories.kv import FileKeyValueStore
from tests.fakes import T0, InMemoryKeyValueStore, at, make_bucket


def test_empty_store_loads_nothing(store: LocalBucketStore) -> None:
    assert store.load_all() == []


def test_upsert_is_idempotent(store: LocalBucketStore) -> None:
    bucket = make_bucket(T0, [10.0, 20.0])

    store.upsert(bucket)
    store.upsert(bucket)

    assert store.load_all() == [bucket]


def test_upsert_replaces_same_bucket_start(store: LocalBucketStore) -> None:
    store.upsert(make_bucket(T0, [10.0]))
    replacement = make_bucket(T0, [50.0, 70.0])

    store.upsert(replacement)

    loaded = store.load_all()
    assert len(loaded) == 1
    assert loaded[0].avg_value == 60.0
    assert loaded[0].raw_values == (50.0, 70.0)


def test_load_all_returns_buckets_sorted(store: LocalBucketStore) -> None:
    store.upsert(make_bucket(at(minutes=10), [3.0]))
    store.upsert(make_bucket(T0, [1.0]))
    store.upsert(make_bucket(at(minutes=5), [2.0]))

    starts = [b.bucket_start for b in store.load_all()]

    assert starts == [T0, at(minutes=5), at(minutes=10)]


def test_retention_prunes_on_write_only(kv: InMemoryKeyValueStore) -> None:
    now = T0 + timedelta(days=40)
    store = LocalBucketStore(kv=kv, clock=lambda: now)
    old = make_bucket(T0, [1.0])
    recent = make_bucket(now - timedelta(days=1), [2.0])

    # seeded directly, no write has happened yet
    kv.data["airsense_readings"] = LocalBucketStore._serialize([old]).decode()
    assert store.load_all() == [old]

    store.upsert(recent)

    assert store.load_all() == [recent]


def test_retention_keeps_bucket_on_cutoff(kv: InMemoryKeyValueStore) -> None:
    now = T0 + timedelta(days=30)
    store = LocalBucketStore(kv=kv, clock=lambda: now)
    boundary = make_bucket(T0, [1.0])

    store.upsert(boundary)

    assert store.load_all() == [boundary]


def test_upsert_many_merges_in_one_write(
    store: LocalBucketStore, kv: InMemoryKeyValueStore
) -> None:
    store.upsert(make_bucket(T0, [1.0]))
    store.upsert(make_bucket(at(minutes=5), [2.0]))
    writes_before = kv.writes

    store.upsert_many(
        [make_bucket(at(minutes=5), [9.0]), make_bucket(at(minutes=10), [3.0])]
    )

    assert kv.writes == writes_before + 1
    assert [b.avg_value for b in store.load_all()] == [1.0, 9.0, 3.0]


def test_corrupt_payload_reads_as_empty(
    store: LocalBucketStore, kv: InMemoryKeyValueStore
) -> None:
    kv.data["airsense_readings"] = "{not json"

    assert store.load_all() == []


def test_payload_with_wrong_shape_reads_as_empty(
    store: LocalBucketStore, kv: InMemoryKeyValueStore
) -> None:
    kv.data["airsense_readings"] = json.dumps([{"bucketStart": "yesterday"}])

    assert store.load_all() == []


def test_read_failure_reads_as_empty(
    store: LocalBucketStore, kv: InMemoryKeyValueStore
) -> None:
    store.upsert(make_bucket(T0, [1.0]))
    kv.fail_reads = True

    assert store.load_all() == []


def test_write_failure_raises_storage_error(
    store: LocalBucketStore, kv: InMemoryKeyValueStore
) -> None:
    kv.fail_writes = True

    with pytest.raises(StorageWriteError) as exc_info:
        store.upsert(make_bucket(T0, [1.0]))

    assert exc_info.value.key == make_bucket(T0, [1.0]).key


def test_clear_removes_everything(store: LocalBucketStore) -> None:
    store.upsert(make_bucket(T0, [1.0]))

    store.clear()

    assert store.load_all() == []
    assert store.stats().total_buckets == 0


def test_clear_failure_raises_storage_error(
    store: LocalBucketStore, kv: InMemoryKeyValueStore
) -> None:
    kv.fail_writes = True

    with pytest.raises(StorageWriteError):
        store.clear()


def test_stats_reports_extent_and_size(
    store: LocalBucketStore, kv: InMemoryKeyValueStore
) -> None:
    store.upsert(make_bucket(at(minutes=10), [3.0]))
    store.upsert(make_bucket(T0, [1.0, 2.0]))

    stats = store.stats()

    assert stats.total_buckets == 2
    assert stats.oldest == T0
    assert stats.newest == at(minutes=10)
    assert stats.size_estimate == len(kv.data["airsense_readings"])


def test_stats_of_empty_store(store: LocalBucketStore) -> None:
    stats = store.stats()

    assert stats.total_buckets == 0
    assert stats.oldest is None
    assert stats.newest is None


def test_file_backed_store_survives_reopen(tmp_path) -> None:
    bucket = make_bucket(T0, [4.0, 6.0])
    LocalBucketStore(kv=FileKeyValueStore(tmp_path), clock=lambda: T0).upsert(bucket)

    reopened = LocalBucketStore(kv=FileKeyValueStore(tmp_path), clock=lambda: T0)

    assert reopened.load_all() == [bucket]


def test_file_store_remove_missing_key_is_noop(tmp_path) -> None:
    kv = FileKeyValueStore(tmp_path)

    kv.remove("never-written")

    assert kv.get("never-written") is None
