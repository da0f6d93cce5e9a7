from __future__ import annotations

from fastapi.testclient import TestClient

from airsense.api import deps
from airsense.factory import create_app
from tests.fakes import FakeRemoteSync, FakeTransport, at, make_bucket, summary_bucket

DAY = "2024-01-01"
# Wide enough to contain 2024-01-01 UTC in any local timezone.
AROUND_DAY = {"start": "2023-12-31", "end": "2024-01-02"}


def test_health(client: TestClient) -> None:
    assert client.get("/api/v1/health").json() == {"status": "ok"}
    assert client.get("/").json() == {"name": "airsense", "status": "ok"}


def test_security_headers(client: TestClient) -> None:
    r = client.get("/api/v1/health")

    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"


def test_posted_chunk_shows_up_in_live_feed(client: TestClient) -> None:
    r = client.post("/api/v1/live/chunks", json={"text": "PM2.5(ATM): 34.7 ug/m3"})
    assert r.status_code == 200
    assert r.json() == {"value": 34.7}

    miss = client.post("/api/v1/live/chunks", json={"text": "PM10: 3"})
    assert miss.json() == {"value": None}

    live = client.get("/api/v1/live").json()
    assert live["status"] == "disconnected"
    assert [r["value"] for r in live["readings"]] == [34.7]
    assert live["latest"]["value"] == 34.7
    assert live["last_data_at"] is not None


def test_oversized_chunk_is_rejected(client: TestClient) -> None:
    r = client.post("/api/v1/live/chunks", json={"text": "x" * 5000})

    assert r.status_code == 422


def test_report_merges_local_and_remote(client: TestClient, remote: FakeRemoteSync) -> None:
    client.app.state.store.upsert(make_bucket(at(minutes=0), [10.0, 12.0]))
    client.app.state.store.upsert(make_bucket(at(minutes=5), [3.0]))
    remote.history = [summary_bucket(at(minutes=5), 30.0)]

    r = client.get("/api/v1/report", params=AROUND_DAY)

    assert r.status_code == 200
    body = r.json()
    assert body["source"] == "merged"
    assert [b["avg_value"] for b in body["buckets"]] == [11.0, 30.0]
    assert remote.history_calls[0][0] == "AA:BB:CC:DD:EE:FF"


def test_report_falls_back_to_local(client: TestClient, remote: FakeRemoteSync) -> None:
    client.app.state.store.upsert(make_bucket(at(minutes=0), [10.0, 12.0]))
    remote.fail = True

    body = client.get("/api/v1/report", params=AROUND_DAY).json()

    assert body["source"] == "local"
    assert body["remote_error"] == "request timed out"
    assert [b["count"] for b in body["buckets"]] == [2]


def test_report_uses_requested_device(client: TestClient, remote: FakeRemoteSync) -> None:
    client.get("/api/v1/report", params={"start": DAY, "end": DAY, "device_id": "other"})

    assert remote.history_calls[0][0] == "other"


def test_report_rejects_inverted_range(client: TestClient) -> None:
    r = client.get("/api/v1/report", params={"start": "2024-01-02", "end": DAY})

    assert r.status_code == 400


def test_storage_stats_and_clear(client: TestClient) -> None:
    client.app.state.store.upsert(make_bucket(at(minutes=0), [1.0]))
    client.app.state.store.upsert(make_bucket(at(minutes=5), [2.0]))

    stats = client.get("/api/v1/storage/stats").json()
    assert stats["total_buckets"] == 2
    assert stats["size_estimate"] > 0

    assert client.delete("/api/v1/storage").status_code == 204
    assert client.get("/api/v1/storage/stats").json()["total_buckets"] == 0


def test_storage_clear_failure_returns_503(client: TestClient, kv) -> None:
    kv.fail_writes = True

    assert client.delete("/api/v1/storage").status_code == 503


def test_devices_lists_both_transports(client: TestClient) -> None:
    devices = client.get("/api/v1/devices").json()

    assert {(d["kind"], d["id"]) for d in devices} == {
        ("ble", "11:22:33:44:55:66"),
        ("classic", "/dev/rfcomm0"),
    }


def test_connect_and_disconnect(
    client: TestClient, transports: list[FakeTransport], remote: FakeRemoteSync
) -> None:
    r = client.post(
        "/api/v1/session/connect",
        json={"id": "11:22:33:44:55:66", "name": "PM Sensor", "kind": "ble"},
    )
    assert r.status_code == 200
    assert r.json()["status"] == "connected"
    assert r.json()["device"] == {"id": "11:22:33:44:55:66", "name": "PM Sensor", "kind": "ble"}
    assert transports[0].started

    again = client.post(
        "/api/v1/session/connect", json={"id": "/dev/rfcomm0", "kind": "classic"}
    )
    assert again.status_code == 409

    client.post("/api/v1/live/chunks", json={"text": "PM2.5(ATM): 8 ug/m3"})
    r = client.post("/api/v1/session/disconnect")
    assert r.json()["status"] == "disconnected"
    assert transports[0].stopped

    stats = client.get("/api/v1/storage/stats").json()
    assert stats["total_buckets"] == 1
    assert client.get("/api/v1/session").json()["device"] is None


def test_connect_rejects_unknown_kind(client: TestClient) -> None:
    r = client.post("/api/v1/session/connect", json={"id": "x", "kind": "usb"})

    assert r.status_code == 422


class UnreadableReportService:
    async def report(self, **kwargs):
        raise OSError("storage directory vanished")


def test_report_storage_failure_returns_503(client: TestClient) -> None:
    client.app.dependency_overrides[deps.get_report_service] = lambda: UnreadableReportService()
    try:
        r = client.get("/api/v1/report")
    finally:
        client.app.dependency_overrides.clear()

    assert r.status_code == 503


def test_live_feed_honours_configured_size(settings, kv, remote) -> None:
    settings.live_readings_max = 2
    app = create_app(settings, kv_store=kv, remote=remote)

    with TestClient(app) as local_client:
        for value in (1, 2, 3):
            local_client.post("/api/v1/live/chunks", json={"text": f"PM2.5(ATM): {value} ug/m3"})
        readings = local_client.get("/api/v1/live").json()["readings"]

    assert [r["value"] for r in readings] == [2.0, 3.0]


def test_connect_rejects_device_id_the_backend_would_refuse(client: TestClient) -> None:
    r = client.post(
        "/api/v1/session/connect", json={"id": "/dev/" + "x" * 64, "kind": "classic"}
    )

    assert r.status_code == 422
