from __future__ import annotations

import base64

from app.schemas import PubSubPushEnvelope
from services.envelope import to_telemetry_event


def _envelope(data: str, attributes=None, publish_time="2024-01-01T00:00:00Z") -> PubSubPushEnvelope:
    message = {"data": data, "attributes": attributes if attributes is not None else {"deviceId": "esp32_1B2B04"}}
    if publish_time is not None:
        message["publishTime"] = publish_time
    return PubSubPushEnvelope.model_validate({"message": message})


def test_decodes_json_body_and_attributes() -> None:
    data = base64.b64encode(b'{"temperature": 21.26, "humidity": 47}').decode("ascii")

    event = to_telemetry_event(_envelope(data))

    assert event.device_id == "esp32_1B2B04"
    assert event.timestamp == 1_704_067_200_000
    assert event.payload == {"temperature": 21.26, "humidity": 47}


def test_invalid_base64_yields_empty_payload() -> None:
    event = to_telemetry_event(_envelope("%%%"))

    assert event.payload == {}


def test_non_object_json_yields_empty_payload() -> None:
    data = base64.b64encode(b"[1, 2]").decode("ascii")

    assert to_telemetry_event(_envelope(data)).payload == {}


def test_missing_publish_time_leaves_timestamp_empty() -> None:
    event = to_telemetry_event(_envelope("", publish_time=None))

    assert event.timestamp is None
    assert event.device_id == "esp32_1B2B04"
