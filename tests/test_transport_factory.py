from __future__ import annotations

import pytest

from airsense.core.config import Settings
from airsense.core.errors import TransportError
from airsense.models.device import BleDevice, ClassicDevice
from airsense.transport import factory
from airsense.transport.ble import BleTransport
from airsense.transport.classic import ClassicTransport


def test_create_transport_picks_implementation(settings: Settings) -> None:
    ble = factory.create_transport(BleDevice(id="11:22:33:44:55:66", name="PM"), settings)
    classic = factory.create_transport(ClassicDevice(id="/dev/rfcomm0", name="HC-05"), settings)

    assert isinstance(ble, BleTransport)
    assert isinstance(classic, ClassicTransport)


@pytest.mark.asyncio
async def test_scan_merges_ble_and_classic(
    settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def fake_discover(timeout: float):
        return [BleDevice(id="11:22:33:44:55:66", name="PM Sensor")]

    monkeypatch.setattr(factory, "discover_ble_devices", fake_discover)
    monkeypatch.setattr(
        factory,
        "list_classic_devices",
        lambda: [ClassicDevice(id="/dev/rfcomm0", name="HC-05")],
    )

    devices = await factory.scan_devices(settings)

    assert [d.kind for d in devices] == ["ble", "classic"]


@pytest.mark.asyncio
async def test_scan_survives_ble_failure(
    settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken_discover(timeout: float):
        raise TransportError("Bluetooth adapter is off")

    monkeypatch.setattr(factory, "discover_ble_devices", broken_discover)
    monkeypatch.setattr(
        factory,
        "list_classic_devices",
        lambda: [ClassicDevice(id="/dev/rfcomm0", name="HC-05")],
    )

    devices = await factory.scan_devices(settings)

    assert [d.id for d in devices] == ["/dev/rfcomm0"]
