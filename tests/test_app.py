import base64
import json
import threading
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.realtime_db import MockRealtimeDatabase, build_default_database
from services.dashboard import build_default_dashboard
from services.ingestion import StoreWriteError, build_default_pipeline
from settings import get_settings

_CACHES = (get_settings, build_default_database, build_default_pipeline, build_default_dashboard)


def _clear_caches() -> None:
    for cache in _CACHES:
        cache.cache_clear()


@pytest.fixture
def database(tmp_path, monkeypatch) -> Iterator[MockRealtimeDatabase]:
    monkeypatch.setenv("REALTIME_DB_PERSISTENCE_PATH", str(tmp_path / "realtime.json"))
    monkeypatch.setenv("INGEST_WORKER_COUNT", "1")
    _clear_caches()
    database = build_default_database()
    yield database
    _clear_caches()


@pytest.fixture
def api_client(database: MockRealtimeDatabase) -> Iterator[TestClient]:
    database.set("devices-ids", {"esp32_1B2B04": "outdoor", "esp32_ABB3B4": True})
    app = create_app()
    with TestClient(app) as client:
        yield client


def _pubsub_body(device_id: str, data: bytes, publish_time: str = "1970-01-01T00:00:01Z") -> dict:
    return {
        "message": {
            "data": base64.b64encode(data).decode("ascii"),
            "attributes": {"deviceId": device_id},
            "messageId": "1",
            "publishTime": publish_time,
        },
        "subscription": "projects/demo/subscriptions/weather-telemetry",
    }


def test_lifespan_starts_and_stops_dashboard(database: MockRealtimeDatabase) -> None:
    database.set("devices-ids", {"esp32_1B2B04": "outdoor"})
    app = create_app()

    with TestClient(app) as client:
        dashboard = build_default_dashboard()
        assert dashboard.running
        assert database.subscription_count() == 1
        assert client.get("/health").json() == {"status": "ok", "dashboard": "live"}

    assert not dashboard.running
    assert database.subscription_count() == 0


def test_lifespan_with_empty_registry_stays_idle(database: MockRealtimeDatabase) -> None:
    app = create_app()

    with TestClient(app) as client:
        assert client.get("/health").json()["dashboard"] == "idle"
        assert client.get("/devices").json() == []
        dataset = client.get("/dataset").json()

    assert dataset["temperature"] == []
    assert database.subscription_count() == 0


def test_post_telemetry_updates_dataset(api_client: TestClient) -> None:
    response = api_client.post(
        "/telemetry",
        json={
            "deviceId": "esp32_1B2B04",
            "timestamp": 1000,
            "payload": {"temperature": 23.449, "humidity": 55},
        },
    )

    assert response.status_code == 202
    body = response.json()
    assert body["accepted"] is True
    assert body["reason"] is None
    assert body["key"]

    dataset = api_client.get("/dataset").json()
    assert [series["name"] for series in dataset["temperature"]] == ["outdoor", "esp32_ABB3B4"]
    assert dataset["temperature"][0]["x"] == ["1970-01-01 00:00:01"]
    assert dataset["temperature"][0]["y"] == [23.4]
    assert dataset["humidity"][0]["y"] == [55]
    assert dataset["temperature"][1]["y"] == []


def test_out_of_range_reading_is_consumed_but_dropped(
    api_client: TestClient, database: MockRealtimeDatabase
) -> None:
    revision = api_client.get("/dataset").json()["revision"]

    response = api_client.post(
        "/telemetry",
        json={"deviceId": "x", "timestamp": 2000, "payload": {"temperature": 81, "humidity": 50}},
    )

    assert response.status_code == 202
    assert response.json() == {"accepted": False, "reason": "out_of_range", "key": None}
    assert database.get("devices-telemetry") is None
    assert api_client.get("/dataset").json()["revision"] == revision


def test_missing_device_id_is_unprocessable(api_client: TestClient) -> None:
    response = api_client.post("/telemetry", json={"timestamp": 1, "payload": {}})

    assert response.status_code == 422


def test_store_failure_returns_service_unavailable(api_client: TestClient, monkeypatch) -> None:
    pipeline = build_default_pipeline()

    def failing_ingest(device_id, timestamp, raw_payload):
        raise StoreWriteError("Could not append reading.")

    monkeypatch.setattr(pipeline, "ingest", failing_ingest)

    response = api_client.post(
        "/telemetry",
        json={"deviceId": "dev", "timestamp": 1, "payload": {"temperature": 20, "humidity": 50}},
    )

    assert response.status_code == 503
    assert response.json()["detail"] == "Could not append reading."


def test_telemetry_is_ingested_off_the_event_loop(api_client: TestClient, monkeypatch) -> None:
    pipeline = build_default_pipeline()
    original_ingest = pipeline.ingest
    threads = []

    def recording_ingest(device_id, timestamp, raw_payload):
        threads.append(threading.current_thread().name)
        return original_ingest(device_id, timestamp, raw_payload)

    monkeypatch.setattr(pipeline, "ingest", recording_ingest)

    response = api_client.post(
        "/telemetry",
        json={"deviceId": "esp32_1B2B04", "timestamp": 1, "payload": {"temperature": 20, "humidity": 50}},
    )

    assert response.status_code == 202
    assert response.json()["accepted"] is True
    assert len(threads) == 1
    assert threads[0].startswith("ingest")


def test_superscript_timestamp_is_rejected_not_failed(api_client: TestClient) -> None:
    response = api_client.post(
        "/telemetry",
        json={"deviceId": "dev", "timestamp": "\u00b2", "payload": {"temperature": 20, "humidity": 50}},
    )

    assert response.status_code == 202
    assert response.json() == {"accepted": False, "reason": "malformed_identity", "key": None}


def test_pubsub_push_is_ingested(api_client: TestClient, database: MockRealtimeDatabase) -> None:
    data = json.dumps({"temperature": 23.449, "humidity": 55}).encode("utf-8")

    response = api_client.post("/pubsub/push", json=_pubsub_body("esp32_1B2B04", data))

    assert response.status_code == 202
    assert response.json()["accepted"] is True
    entries = database.limit_to_last("devices-telemetry/esp32_1B2B04")
    assert [value for _, value in entries] == [{"timestamp": 1000, "temperature": 23.4, "humidity": 55}]


def test_pubsub_push_with_undecodable_data_is_dropped(api_client: TestClient) -> None:
    response = api_client.post("/pubsub/push", json=_pubsub_body("esp32_1B2B04", b"not json"))

    assert response.status_code == 202
    assert response.json()["reason"] == "malformed_payload"


def test_pubsub_push_without_device_attribute_is_dropped(api_client: TestClient) -> None:
    body = _pubsub_body("esp32_1B2B04", b"{}")
    body["message"]["attributes"] = {}

    response = api_client.post("/pubsub/push", json=body)

    assert response.json()["reason"] == "malformed_identity"


def test_devices_lists_registry(api_client: TestClient) -> None:
    response = api_client.get("/devices")

    assert response.status_code == 200
    assert response.json() == [
        {"device_id": "esp32_1B2B04", "alias": "outdoor"},
        {"device_id": "esp32_ABB3B4", "alias": "esp32_ABB3B4"},
    ]


def test_dashboard_page_renders(api_client: TestClient) -> None:
    response = api_client.get("/ui")

    assert response.status_code == 200
    assert "temperaturePlot" in response.text
    assert "humidityPlot" in response.text
    assert "No device id was found." not in response.text


def test_root_points_to_health(api_client: TestClient) -> None:
    response = api_client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
