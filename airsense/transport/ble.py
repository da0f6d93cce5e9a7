from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from airsense.core.errors import TransportError
from airsense.models.device import BleDevice
from airsense.transport.base import ChunkCallback, LostCallback

logger = logging.getLogger(__name__)


async def discover_ble_devices(timeout: float = 10.0) -> list[BleDevice]:
    """Scan for advertising BLE devices; unnamed devices are left out."""
    try:
        devices_adv = await BleakScanner.discover(timeout=timeout, return_adv=True)
    except BleakError as e:
        raise TransportError(f"BLE scan failed: {e}") from e

    found: dict[str, BleDevice] = {}
    for dev, adv in devices_adv.values():
        name = dev.name or adv.local_name
        if not name or dev.address in found:
            continue
        logger.debug("Found BLE device %s (%s) rssi=%s", name, dev.address, adv.rssi)
        found[dev.address] = BleDevice(id=dev.address, name=name)
    return list(found.values())


class BleTransport:
    def __init__(
        self,
        *,
        address: str,
        characteristic_uuid: str,
        connect_timeout: float = 10.0,
        client_factory: Callable[..., Any] = BleakClient,
    ) -> None:
        self._address = address
        self._client_factory = client_factory
        self._characteristic_uuid = characteristic_uuid
        self._connect_timeout = connect_timeout
        self._client: Any = None
        self._stopping = False

    async def start(self, on_chunk: ChunkCallback, on_lost: LostCallback) -> None:
        self._stopping = False

        def on_disconnect(_client: Any) -> None:
            if self._stopping:
                return
            logger.warning("BLE connection lost: %s", self._address)
            on_lost()

        def handle(_sender: object, data: bytearray) -> None:
            text = bytes(data).decode("utf-8", errors="replace")
            try:
                on_chunk(text)
            except Exception:
                # must not propagate into the BLE stack
                logger.exception("Chunk handler failed")

        client = self._client_factory(
            self._address,
            disconnected_callback=on_disconnect,
            timeout=self._connect_timeout,
        )
        logger.info("BLE connection starting: %s", self._address)
        try:
            await client.connect()
            await client.start_notify(self._characteristic_uuid, handle)
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            self._stopping = True
            try:
                await client.disconnect()
            except (BleakError, OSError):
                pass
            raise TransportError(f"Could not connect to {self._address}: {e}") from e
        self._client = client
        logger.info("BLE notifications started: char=%s", self._characteristic_uuid)

    async def stop(self) -> None:
        self._stopping = True
        client, self._client = self._client, None
        if client is None:
            return
        try:
            if client.is_connected:
                await client.stop_notify(self._characteristic_uuid)
            await client.disconnect()
        except (BleakError, OSError) as e:
            logger.warning("BLE disconnect error: %s", e)
        logger.info("BLE connection closed: %s", self._address)
