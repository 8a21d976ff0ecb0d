"""Unit tests for reading validation."""

from __future__ import annotations

import pytest

from services.validator import RejectionReason, validate


def _validate(temperature, humidity, device_id="esp32_1B2B04", timestamp=1000):
    return validate(
        {"temperature": temperature, "humidity": humidity},
        device_id=device_id,
        timestamp=timestamp,
    )


@pytest.mark.parametrize("temperature", [-40, -40.0, 0, 21.5, 80, 80.0])
def test_temperature_within_range_is_accepted(temperature) -> None:
    outcome = _validate(temperature, 50)

    assert outcome.accepted
    assert outcome.reason is None


@pytest.mark.parametrize("temperature", [-40.1, -41, 80.1, 81, 500])
def test_temperature_out_of_range_is_rejected(temperature) -> None:
    outcome = _validate(temperature, 50)

    assert not outcome.accepted
    assert outcome.reading is None
    assert outcome.reason is RejectionReason.out_of_range


@pytest.mark.parametrize("humidity", [0, 100, 42])
def test_humidity_within_range_is_accepted(humidity) -> None:
    assert _validate(20, humidity).accepted


@pytest.mark.parametrize("humidity", [-1, 101, 100.5, -0.5])
def test_humidity_out_of_range_is_rejected(humidity) -> None:
    assert _validate(20, humidity).reason is RejectionReason.out_of_range


def test_rounding_precedes_range_checks() -> None:
    assert _validate(80.04, 100.4).accepted
    assert _validate(-40.04, -0.4).accepted
    assert _validate(80.05, 50).reason is RejectionReason.out_of_range


def test_temperature_rounds_to_one_decimal_half_away_from_zero() -> None:
    assert _validate(23.449, 55).reading.temperature == 23.4
    assert _validate(23.451, 55).reading.temperature == 23.5
    assert _validate(23.45, 55).reading.temperature == 23.5
    assert _validate(-23.45, 55).reading.temperature == -23.5


def test_humidity_rounds_to_integer() -> None:
    reading = _validate(20, 55.5).reading

    assert reading.humidity == 56
    assert isinstance(reading.humidity, int)


def test_numeric_strings_are_accepted() -> None:
    reading = _validate(" 19.96 ", "40.2").reading

    assert reading.temperature == 20.0
    assert reading.humidity == 40


def test_accepted_reading_carries_identity() -> None:
    reading = _validate(23.449, 55, device_id="esp32_1B2B04", timestamp=1000).reading

    assert reading.device_id == "esp32_1B2B04"
    assert reading.timestamp == 1000
    assert reading.to_log_entry() == {"timestamp": 1000, "temperature": 23.4, "humidity": 55}


@pytest.mark.parametrize(
    "payload",
    [
        {"temperature": "warm", "humidity": 50},
        {"temperature": 20},
        {"humidity": 50},
        {"temperature": True, "humidity": 50},
        {"temperature": float("nan"), "humidity": 50},
        {"temperature": 20, "humidity": float("inf")},
        {"temperature": [20], "humidity": 50},
        {"temperature": None, "humidity": 50},
    ],
)
def test_malformed_payload_is_rejected(payload) -> None:
    outcome = validate(payload, device_id="dev", timestamp=1)

    assert outcome.reason is RejectionReason.malformed_payload


def test_non_mapping_payload_is_rejected() -> None:
    outcome = validate("temperature=20", device_id="dev", timestamp=1)

    assert outcome.reason is RejectionReason.malformed_payload


@pytest.mark.parametrize(
    "device_id, timestamp",
    [
        ("", 1000),
        ("   ", 1000),
        (None, 1000),
        (42, 1000),
        ("devices/other", 1000),
        ("dev", None),
        ("dev", -1),
        ("dev", True),
        ("dev", 12.5),
        ("dev", "yesterday"),
        ("dev", "²"),
        ("dev", "٣"),
    ],
)
def test_malformed_identity_is_rejected(device_id, timestamp) -> None:
    outcome = validate({"temperature": 20, "humidity": 50}, device_id=device_id, timestamp=timestamp)

    assert outcome.reason is RejectionReason.malformed_identity


def test_integral_string_timestamp_is_accepted() -> None:
    outcome = validate({"temperature": 20, "humidity": 50}, device_id="dev", timestamp="2000")

    assert outcome.reading.timestamp == 2000


def test_identity_is_checked_before_payload() -> None:
    outcome = validate({"temperature": 500, "humidity": 50}, device_id="", timestamp=1)

    assert outcome.reason is RejectionReason.malformed_identity
