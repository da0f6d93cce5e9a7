from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import httpx
from pydantic import ValidationError

from airsense.core.errors import NetworkError
from airsense.models.reading import Bucket
from airsense.schemas.remote import RemoteHistoryRecord, RemoteIngestRequest, RemoteMetadata

logger = logging.getLogger(__name__)

INGEST_PATH = "/api/v1/data/ingest"
HISTORY_PATH = "/api/v1/data/history"
DEVICES_PATH = "/api/v1/data/devices"

DEFAULT_INTERVAL_MS = 5 * 60 * 1000

TokenProvider = Callable[[], str | None]


def to_iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def record_to_bucket(record: RemoteHistoryRecord, interval_ms: int) -> Bucket:
    meta = record.metadata or RemoteMetadata()
    avg = record.value
    return Bucket(
        bucket_start=record.timestamp,
        bucket_end=record.timestamp + timedelta(milliseconds=interval_ms),
        avg_value=avg,
        min_value=meta.min if meta.min is not None else avg,
        max_value=meta.max if meta.max is not None else avg,
        count=meta.count if meta.count is not None else 1,
    )


class RemoteSyncClient:
    """Best-effort mirror of finalized buckets on the backend.

    Every call is bounded by the client timeout. Timeouts, transport errors,
    non-2xx answers and undecodable bodies all surface as ``NetworkError``.
    Nothing is retried or queued.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float,
        token_provider: TokenProvider,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._interval_ms = interval_ms
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._token_provider())

    async def aclose(self) -> None:
        await self._client.aclose()

    async def ingest(self, bucket: Bucket, device_id: str) -> None:
        payload = RemoteIngestRequest(
            device_id=device_id,
            timestamp=to_iso(bucket.bucket_start),
            value=bucket.avg_value,
            metadata=RemoteMetadata(
                min=bucket.min_value, max=bucket.max_value, count=bucket.count
            ),
        )
        await self._request(
            "POST", INGEST_PATH, json=payload.model_dump(by_alias=True)
        )
        logger.debug("Pushed bucket %s for %s", payload.timestamp, device_id)

    async def register_device(self, mac_id: str) -> None:
        await self._request("POST", DEVICES_PATH, json={"macId": mac_id})
        logger.info("Registered device %s", mac_id)

    async def get_history(
        self,
        device_id: str,
        from_iso: str,
        to_iso: str,
        *,
        limit: int | None = None,
    ) -> list[Bucket]:
        params: dict[str, Any] = {"deviceId": device_id, "from": from_iso, "to": to_iso}
        if limit is not None:
            params["limit"] = int(limit)
        payload = await self._request("GET", HISTORY_PATH, params=params)

        rows = self._extract_rows(payload)
        buckets: list[Bucket] = []
        skipped = 0
        for row in rows:
            try:
                record = RemoteHistoryRecord.model_validate(row)
            except ValidationError:
                skipped += 1
                continue
            buckets.append(record_to_bucket(record, self._interval_ms))
        if skipped:
            logger.warning("Skipped %d malformed history records", skipped)
        return buckets

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        token = self._token_provider()
        if not token:
            raise NetworkError("No bearer token available")
        headers = {"Authorization": f"Bearer {token}"}
        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if resp.is_error:
            raise NetworkError(
                f"{method} {path} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkError(f"{method} {path} returned a non-JSON body") from e

    @staticmethod
    def _extract_rows(payload: Any) -> list[Any]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            data = payload.get("data")
            if isinstance(data, list):
                return data
        raise NetworkError("Unexpected history response shape")
