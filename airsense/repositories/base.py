from __future__ import annotations

from typing import Protocol

from airsense.models.reading import Bucket, StorageStats


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class BucketRepository(Protocol):
    def load_all(self) -> list[Bucket]: ...

    def upsert(self, bucket: Bucket) -> None: ...

    def upsert_many(self, buckets: list[Bucket]) -> None: ...

    def clear(self) -> None: ...

    def stats(self) -> StorageStats: ...
