from __future__ import annotations

from typing import Protocol

from airsense.models.reading import Bucket


class RemoteSync(Protocol):
    @property
    def enabled(self) -> bool: ...

    async def ingest(self, bucket: Bucket, device_id: str) -> None: ...

    async def register_device(self, mac_id: str) -> None: ...

    async def get_history(
        self,
        device_id: str,
        from_iso: str,
        to_iso: str,
        *,
        limit: int | None = None,
    ) -> list[Bucket]: ...
