"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True, slots=True)
class Reading:
    """A validated telemetry reading from one device."""

    device_id: str
    timestamp: int
    temperature: float
    humidity: int

    def to_log_entry(self) -> dict:
        """Shape stored under the device's append log."""
        return {
            "timestamp": self.timestamp,
            "temperature": self.temperature,
            "humidity": self.humidity,
        }


@dataclass(frozen=True, slots=True)
class DeviceRecord:
    device_id: str
    alias: str


@dataclass(frozen=True, slots=True)
class DeviceWindow:
    """The most recent ``max_size`` readings of one device, oldest first."""

    device_id: str
    max_size: int
    entries: Tuple[Reading, ...] = field(default_factory=tuple)

    @property
    def timestamps(self) -> list[int]:
        return [entry.timestamp for entry in self.entries]
