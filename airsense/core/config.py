from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Serial-over-BLE modules (HM-10 style) notify on FFE1 of service FFE0.
DEFAULT_BLE_CHARACTERISTIC_UUID = "0000FFE1-0000-1000-8000-00805F9B34FB"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="AIRSENSE_",
        case_sensitive=False,
    )

    env: str = Field(default="development")
    debug: bool = Field(default=False)
    docs_enabled: bool = Field(default=True)
    cors_origins: list[str] = Field(default_factory=list)

    log_level: str | None = Field(default="INFO")
    log_file: str | None = Field(default=None)

    bucket_interval_seconds: int = Field(default=300, ge=1, le=60 * 60 * 24)
    retention_days: int = Field(default=30, ge=1, le=3650)
    live_readings_max: int = Field(default=500, ge=1, le=100_000)

    storage_dir: Path = Field(default=Path(".airsense"))
    storage_key: str = Field(default="airsense_readings", min_length=1, max_length=128)

    remote_base_url: AnyHttpUrl = Field(default="http://10.0.2.2:5000")
    remote_timeout_seconds: float = Field(default=15.0, ge=1.0, le=60.0)
    remote_token: str | None = Field(default=None)
    device_id: str | None = Field(default=None, max_length=64)
    history_limit: int | None = Field(default=None, ge=1, le=100_000)

    staleness_threshold_seconds: float = Field(default=15.0, ge=1.0, le=3600.0)
    staleness_check_interval_seconds: float = Field(default=10.0, ge=0.1, le=3600.0)
    classic_poll_interval_seconds: float = Field(default=1.0, ge=0.05, le=60.0)
    classic_baudrate: int = Field(default=9600, ge=1200, le=4_000_000)

    ble_characteristic_uuid: str = Field(default=DEFAULT_BLE_CHARACTERISTIC_UUID)
    ble_scan_timeout_seconds: float = Field(default=10.0, ge=1.0, le=120.0)

    report_refresh_enabled: bool = Field(default=True)
    report_refresh_interval_seconds: float = Field(default=30.0, ge=1.0, le=3600.0)

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def remote_enabled(self) -> bool:
        return bool(self.remote_token)

    @property
    def bucket_interval_ms(self) -> int:
        return self.bucket_interval_seconds * 1000

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.retention_days)


def load_settings() -> Settings:
    return Settings()
