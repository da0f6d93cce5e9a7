from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from airsense.models.device import DEVICE_ID_MAX_LENGTH

TIMESTAMP_KEYS = ("timestamp", "bucketStart", "ts")
VALUE_KEYS = ("value", "average", "avg")


def _finite_non_negative(v: float | None) -> float | None:
    if v is None:
        return None
    if not math.isfinite(v) or v < 0:
        raise ValueError("value must be a finite, non-negative number")
    return v


class RemoteMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    min: float | None = None
    max: float | None = None
    count: int | None = Field(default=None, ge=1)

    @field_validator("min", "max")
    @classmethod
    def _check_extrema(cls, v: float | None) -> float | None:
        return _finite_non_negative(v)


class RemoteIngestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(alias="deviceId", min_length=1, max_length=DEVICE_ID_MAX_LENGTH)
    timestamp: str
    value: float
    metadata: RemoteMetadata


class RemoteHistoryRecord(BaseModel):
    """One backend history row; tolerant of the key spellings the backend uses."""

    model_config = ConfigDict(extra="ignore")

    timestamp: datetime
    value: float
    metadata: RemoteMetadata | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        out = dict(data)
        if "timestamp" not in out:
            for key in TIMESTAMP_KEYS[1:]:
                if key in out:
                    out["timestamp"] = out[key]
                    break
        if "value" not in out or out["value"] is None:
            for key in VALUE_KEYS[1:]:
                if out.get(key) is not None:
                    out["value"] = out[key]
                    break
        return out

    @field_validator("timestamp")
    @classmethod
    def _timestamp_to_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("value")
    @classmethod
    def _check_value(cls, v: float) -> float:
        return _finite_non_negative(v)
