from __future__ import annotations

import logging

from airsense.core.config import Settings
from airsense.core.errors import TransportError
from airsense.models.device import BleDevice, ClassicDevice, TransportKind
from airsense.transport.base import Transport
from airsense.transport.ble import BleTransport, discover_ble_devices
from airsense.transport.classic import ClassicTransport, list_classic_devices

logger = logging.getLogger(__name__)


def create_transport(device: TransportKind, settings: Settings) -> Transport:
    if isinstance(device, BleDevice):
        return BleTransport(
            address=device.id,
            characteristic_uuid=settings.ble_characteristic_uuid,
            connect_timeout=settings.ble_scan_timeout_seconds,
        )
    if isinstance(device, ClassicDevice):
        return ClassicTransport(
            port=device.id,
            baudrate=settings.classic_baudrate,
            poll_interval_seconds=settings.classic_poll_interval_seconds,
        )
    raise TypeError(f"Unsupported device: {device!r}")


async def scan_devices(settings: Settings) -> list[TransportKind]:
    devices: list[TransportKind] = []
    try:
        devices.extend(await discover_ble_devices(settings.ble_scan_timeout_seconds))
    except TransportError as e:
        logger.warning("BLE scan failed: %s", e)
    try:
        for device in list_classic_devices():
            if all(d.id != device.id for d in devices):
                devices.append(device)
    except OSError as e:
        logger.warning("Classic device listing failed: %s", e)
    return devices
