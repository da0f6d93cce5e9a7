from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from airsense.core.config import Settings
from airsense.factory import create_app
from airsense.models.device import BleDevice, ClassicDevice
from airsense.repositories.buckets import LocalBucketStore
from tests.fakes import T0, FakeRemoteSync, FakeTransport, InMemoryKeyValueStore


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        env="test",
        debug=True,
        docs_enabled=False,
        log_level=None,
        storage_dir=tmp_path / "store",
        retention_days=3650,
        remote_base_url="http://backend.test",
        remote_timeout_seconds=1.0,
        remote_token="test-token",
        device_id="AA:BB:CC:DD:EE:FF",
        report_refresh_enabled=False,
    )


@pytest.fixture()
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def store(kv: InMemoryKeyValueStore) -> LocalBucketStore:
    # Clock sits just after T0 so nothing seeded around T0 is pruned.
    return LocalBucketStore(kv=kv, clock=lambda: T0)


@pytest.fixture()
def remote() -> FakeRemoteSync:
    return FakeRemoteSync()


@pytest.fixture()
def transports() -> list[FakeTransport]:
    return []


@pytest.fixture()
def client(
    settings: Settings,
    kv: InMemoryKeyValueStore,
    remote: FakeRemoteSync,
    transports: list[FakeTransport],
) -> TestClient:
    def transport_factory(_device):
        transport = FakeTransport()
        transports.append(transport)
        return transport

    async def device_scanner():
        return [
            BleDevice(id="11:22:33:44:55:66", name="PM Sensor"),
            ClassicDevice(id="/dev/rfcomm0", name="HC-05"),
        ]

    app = create_app(
        settings,
        kv_store=kv,
        remote=remote,
        transport_factory=transport_factory,
        device_scanner=device_scanner,
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def now() -> datetime:
    return datetime.now(tz=timezone.utc)
