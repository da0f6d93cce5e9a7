from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import serial
from serial.tools import list_ports

from airsense.core.errors import TransportError
from airsense.models.device import ClassicDevice
from airsense.services.scheduling import PeriodicTask
from airsense.transport.base import ChunkCallback, LostCallback

logger = logging.getLogger(__name__)


def list_classic_devices() -> list[ClassicDevice]:
    """Serial ports, including bound RFCOMM channels of paired devices."""
    return [
        ClassicDevice(id=port.device, name=port.description or "Unknown Device")
        for port in list_ports.comports()
    ]


class ClassicTransport:
    """Polls a Classic Bluetooth serial port for waiting bytes."""

    def __init__(
        self,
        *,
        port: str,
        baudrate: int = 9600,
        poll_interval_seconds: float = 1.0,
        serial_factory: Callable[..., Any] = serial.Serial,
    ) -> None:
        self._port = port
        self._baudrate = baudrate
        self._poll_interval = poll_interval_seconds
        self._serial_factory = serial_factory
        self._serial: Any = None
        self._poller: PeriodicTask | None = None
        self._on_chunk: ChunkCallback | None = None
        self._on_lost: LostCallback | None = None

    async def start(self, on_chunk: ChunkCallback, on_lost: LostCallback) -> None:
        try:
            self._serial = await asyncio.to_thread(
                self._serial_factory, self._port, self._baudrate, timeout=0
            )
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Could not open {self._port}: {e}") from e
        self._on_chunk = on_chunk
        self._on_lost = on_lost
        self._poller = PeriodicTask(self._poll_interval, self.poll, name=f"classic-poll:{self._port}")
        self._poller.start()
        logger.info("Classic connection opened: %s @ %d", self._port, self._baudrate)

    async def poll(self) -> None:
        if self._serial is None or self._on_chunk is None:
            return
        try:
            data = await asyncio.to_thread(self._read_available)
        except (serial.SerialException, OSError) as e:
            logger.warning("Classic read error on %s: %s", self._port, e)
            if not getattr(self._serial, "is_open", True) and self._on_lost is not None:
                self._on_lost()
            return
        if data:
            self._on_chunk(data.decode("utf-8", errors="replace"))

    def _read_available(self) -> bytes:
        waiting = self._serial.in_waiting
        if waiting <= 0:
            return b""
        return self._serial.read(waiting)

    async def stop(self) -> None:
        if self._poller is not None:
            await self._poller.stop()
            self._poller = None
        ser, self._serial = self._serial, None
        if ser is not None:
            try:
                await asyncio.to_thread(ser.close)
            except (serial.SerialException, OSError) as e:
                logger.warning("Classic close error on %s: %s", self._port, e)
        logger.info("Classic connection closed: %s", self._port)
