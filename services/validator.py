"""Range and shape checks applied to every inbound telemetry payload."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from models.records import Reading

TEMPERATURE_MIN = Decimal("-40")
TEMPERATURE_MAX = Decimal("80")
HUMIDITY_MIN = Decimal("0")
HUMIDITY_MAX = Decimal("100")

_ONE_DECIMAL = Decimal("0.1")
_INTEGER = Decimal("1")
_PLAUSIBLE_MAGNITUDE = Decimal("1000")
# Device ids become database path segments.
_KEY_FORBIDDEN_CHARS = frozenset("/.#$[]")


class RejectionReason(str, Enum):
    """Why a payload was dropped instead of stored."""

    out_of_range = "out_of_range"
    malformed_identity = "malformed_identity"
    malformed_payload = "malformed_payload"


@dataclass(frozen=True)
class ValidationOutcome:
    reading: Optional[Reading] = None
    reason: Optional[RejectionReason] = None

    @property
    def accepted(self) -> bool:
        return self.reading is not None


def _to_decimal(value: Any) -> Optional[Decimal]:
    # bool is an int subclass; a sensor never reports True degrees.
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        candidate = str(value)
    elif isinstance(value, str):
        candidate = value.strip()
    else:
        return None
    try:
        parsed = Decimal(candidate)
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def _to_timestamp(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        digits = value.strip()
        # str.isdigit also admits superscripts, which int() refuses.
        if not (digits.isascii() and digits.isdigit()):
            return None
        parsed = int(digits)
    else:
        return None
    return parsed if parsed >= 0 else None


def validate(raw_payload: Any, device_id: Any, timestamp: Any) -> ValidationOutcome:
    """Round and range-check one payload.

    Temperature keeps one decimal and humidity none, both rounded half away
    from zero before the range checks. Boundaries are inclusive.
    """
    if not isinstance(device_id, str) or not device_id.strip():
        return ValidationOutcome(reason=RejectionReason.malformed_identity)
    if any(char in _KEY_FORBIDDEN_CHARS for char in device_id):
        return ValidationOutcome(reason=RejectionReason.malformed_identity)
    parsed_timestamp = _to_timestamp(timestamp)
    if parsed_timestamp is None:
        return ValidationOutcome(reason=RejectionReason.malformed_identity)

    if not isinstance(raw_payload, Mapping):
        return ValidationOutcome(reason=RejectionReason.malformed_payload)
    raw_temperature = _to_decimal(raw_payload.get("temperature"))
    raw_humidity = _to_decimal(raw_payload.get("humidity"))
    if raw_temperature is None or raw_humidity is None:
        return ValidationOutcome(reason=RejectionReason.malformed_payload)
    # quantize() overflows the decimal context on absurd magnitudes.
    if abs(raw_temperature) > _PLAUSIBLE_MAGNITUDE or abs(raw_humidity) > _PLAUSIBLE_MAGNITUDE:
        return ValidationOutcome(reason=RejectionReason.out_of_range)

    temperature = raw_temperature.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)
    humidity = raw_humidity.quantize(_INTEGER, rounding=ROUND_HALF_UP)

    if not TEMPERATURE_MIN <= temperature <= TEMPERATURE_MAX:
        return ValidationOutcome(reason=RejectionReason.out_of_range)
    if not HUMIDITY_MIN <= humidity <= HUMIDITY_MAX:
        return ValidationOutcome(reason=RejectionReason.out_of_range)

    return ValidationOutcome(
        reading=Reading(
            device_id=device_id.strip(),
            timestamp=parsed_timestamp,
            temperature=float(temperature),
            humidity=int(humidity),
        )
    )
