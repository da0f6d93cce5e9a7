"""Connection lifecycle around one transport.

Timers (staleness watchdog, transport polling) belong to a connection and are
cancelled with it. An explicit disconnect flushes the open bucket; a lost
link does not, so a quick reconnect keeps filling the same window.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from datetime import datetime, timezone
from typing import Any

from airsense.clients.base import RemoteSync
from airsense.core.errors import NetworkError, TransportError
from airsense.models.device import ConnectionStatus, TransportKind
from airsense.models.reading import Bucket
from airsense.services.ingestion import IngestionPipeline
from airsense.services.scheduling import PeriodicTask
from airsense.transport.base import Transport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[TransportKind], Transport]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class StalenessWatchdog:
    """Flags the link as stale when no chunk arrived within the threshold."""

    def __init__(
        self,
        *,
        last_data_at: Callable[[], datetime | None],
        threshold_seconds: float = 15.0,
        check_interval_seconds: float = 10.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._last_data_at = last_data_at
        self._threshold = threshold_seconds
        self._clock = clock
        self._task = PeriodicTask(check_interval_seconds, self.check, name="staleness-watchdog")
        self.stale = False

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self.stale = False
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()
        self.stale = False

    def cancel(self) -> asyncio.Task[None] | None:
        self.stale = False
        return self._task.cancel()

    async def check(self) -> None:
        last = self._last_data_at()
        if last is None:
            return
        age = (self._clock() - last).total_seconds()
        if age > self._threshold:
            if not self.stale:
                logger.warning(
                    "No data received from device in the last %.0f seconds, "
                    "connection may be lost",
                    age,
                )
            self.stale = True
        else:
            self.stale = False


class ConnectionSession:
    def __init__(
        self,
        *,
        pipeline: IngestionPipeline,
        transport_factory: TransportFactory,
        remote: RemoteSync | None = None,
        staleness_threshold_seconds: float = 15.0,
        staleness_check_interval_seconds: float = 10.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._pipeline = pipeline
        self._transport_factory = transport_factory
        self._remote = remote
        self._clock = clock
        self._status = ConnectionStatus.DISCONNECTED
        self._device: TransportKind | None = None
        self._transport: Transport | None = None
        self._background: set[asyncio.Task[None]] = set()
        self.watchdog = StalenessWatchdog(
            last_data_at=lambda: self._pipeline.last_data_at,
            threshold_seconds=staleness_threshold_seconds,
            check_interval_seconds=staleness_check_interval_seconds,
            clock=clock,
        )

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def device(self) -> TransportKind | None:
        return self._device

    @property
    def stale(self) -> bool:
        return self.watchdog.stale

    @property
    def pipeline(self) -> IngestionPipeline:
        return self._pipeline

    async def connect(self, device: TransportKind) -> None:
        if self._status is not ConnectionStatus.DISCONNECTED:
            raise TransportError("A device is already connected")

        logger.info("Connecting to %s (%s)", device.name, device.kind)
        self._status = ConnectionStatus.CONNECTING
        transport = self._transport_factory(device)
        previous_device_id = self._pipeline.device_id
        self._pipeline.bind_device(device.id)
        try:
            await transport.start(self._pipeline.on_chunk, self.handle_transport_lost)
        except TransportError:
            self._pipeline.bind_device(previous_device_id)
            self._status = ConnectionStatus.DISCONNECTED
            raise

        self._transport = transport
        self._device = device
        self._pipeline.last_data_at = self._clock()
        self._status = ConnectionStatus.CONNECTED
        self.watchdog.start()
        logger.info("Connected to %s (%s)", device.name, device.kind)

        if self._remote is not None and self._remote.enabled:
            self._spawn(self._register(device.id))

    async def disconnect(self) -> Bucket | None:
        logger.info("Disconnecting")
        await self.watchdog.stop()
        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                await transport.stop()
            except TransportError as e:
                logger.warning("Transport stop failed: %s", e)

        flushed = self._pipeline.flush()
        self._pipeline.bind_device(None)
        self._pipeline.last_data_at = None
        self._device = None
        self._status = ConnectionStatus.DISCONNECTED
        logger.info("Disconnected")
        return flushed

    def handle_transport_lost(self) -> None:
        if self._status is ConnectionStatus.DISCONNECTED:
            return
        logger.warning("Transport lost, open bucket kept until reconnect or disconnect")
        # Detach this connection now so a quick reconnect is left alone.
        transport, self._transport = self._transport, None
        watchdog_task = self.watchdog.cancel()
        self._device = None
        self._status = ConnectionStatus.DISCONNECTED
        self._spawn(self._teardown_lost(transport, watchdog_task))

    async def wait_idle(self) -> None:
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _teardown_lost(
        self,
        transport: Transport | None,
        watchdog_task: asyncio.Task[None] | None,
    ) -> None:
        if watchdog_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await watchdog_task
        if transport is not None:
            try:
                await transport.stop()
            except TransportError as e:
                logger.warning("Transport stop failed: %s", e)

    async def _register(self, device_id: str) -> None:
        if self._remote is None:
            return
        try:
            await self._remote.register_device(device_id)
        except NetworkError as e:
            logger.warning("Device registration failed: %s", e)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop, background work skipped")
            return
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
