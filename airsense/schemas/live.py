from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class LiveReadingRead(BaseModel):
    timestamp: datetime
    value: float


class LiveFeedRead(BaseModel):
    status: str
    stale: bool = False
    device_id: str | None = None
    device_name: str | None = None
    last_data_at: datetime | None = None
    latest: LiveReadingRead | None = None
    readings: list[LiveReadingRead] = Field(default_factory=list)


class ChunkCreate(BaseModel):
    text: str = Field(max_length=4096)


class ChunkResult(BaseModel):
    value: float | None = None
