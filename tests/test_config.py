from __future__ import annotations

import pytest

from airsense.core.config import Settings


def test_settings_defaults() -> None:
    s = Settings(_env_file=None)

    assert s.bucket_interval_ms == 300_000
    assert s.retention.days == 30
    assert s.live_readings_max == 500
    assert s.staleness_threshold_seconds == 15
    assert s.staleness_check_interval_seconds == 10
    assert s.remote_enabled is False


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AIRSENSE_BUCKET_INTERVAL_SECONDS", "60")
    monkeypatch.setenv("AIRSENSE_REMOTE_TOKEN", "abc")
    monkeypatch.setenv("AIRSENSE_LIVE_READINGS_MAX", "2")

    s = Settings(_env_file=None)

    assert s.bucket_interval_ms == 60_000
    assert s.remote_enabled is True
    assert s.live_readings_max == 2


def test_settings_reject_out_of_range_values() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, remote_timeout_seconds=0.1)
