from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Union


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class BleDevice:
    id: str
    name: str
    kind: Literal["ble"] = "ble"


@dataclass(frozen=True)
class ClassicDevice:
    # For Classic Bluetooth the id is the RFCOMM serial port (e.g. /dev/rfcomm0).
    id: str
    name: str
    kind: Literal["classic"] = "classic"


DEVICE_ID_MAX_LENGTH = 64

TransportKind = Union[BleDevice, ClassicDevice]
