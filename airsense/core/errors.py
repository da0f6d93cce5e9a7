from __future__ import annotations


class AirsenseError(Exception):
    """Base class for errors raised by the ingestion core."""


class StorageWriteError(AirsenseError):
    def __init__(self, message: str, *, key: int | None = None) -> None:
        super().__init__(message)
        self.key = key


class NetworkError(AirsenseError):
    """Remote call failed: timeout, unreachable host, non-2xx or bad body."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(AirsenseError):
    """A Bluetooth transport could not be opened or was lost."""
