from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

ChunkCallback = Callable[[str], object]
LostCallback = Callable[[], None]


class Transport(Protocol):
    """Delivers opaque text chunks; no framing or ordering across reconnects."""

    async def start(self, on_chunk: ChunkCallback, on_lost: LostCallback) -> None: ...

    async def stop(self) -> None: ...
