from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from airsense.models.device import DEVICE_ID_MAX_LENGTH


class DeviceRead(BaseModel):
    id: str
    name: str
    kind: Literal["ble", "classic"]


class ConnectRequest(BaseModel):
    id: str = Field(min_length=1, max_length=DEVICE_ID_MAX_LENGTH)
    name: str = Field(default="Unknown Device", max_length=128)
    kind: Literal["ble", "classic"]


class SessionRead(BaseModel):
    status: str
    stale: bool = False
    device: DeviceRead | None = None
    last_data_at: datetime | None = None
    last_error: str | None = None
