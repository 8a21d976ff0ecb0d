"""Decoding of Pub/Sub push envelopes into telemetry events."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Optional

from app.schemas import PubSubPushEnvelope, TelemetryEvent


def _decode_data(data: str) -> Optional[dict]:
    try:
        raw = base64.b64decode(data, validate=True)
        decoded = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
        return None
    return decoded if isinstance(decoded, dict) else None


def to_telemetry_event(envelope: PubSubPushEnvelope) -> TelemetryEvent:
    """Map a push envelope onto the transport-neutral event.

    The device id comes from the message attributes and the timestamp from
    the publish time. A body that is not base64-encoded JSON yields an event
    without payload so that validation rejects it as malformed.
    """
    message = envelope.message
    timestamp: Any = None
    if message.publish_time is not None:
        timestamp = int(message.publish_time.timestamp() * 1000)
    payload = _decode_data(message.data)
    return TelemetryEvent(
        device_id=message.attributes.get("deviceId"),
        timestamp=timestamp,
        payload=payload if payload is not None else {},
    )
