"""Validation and persistence of inbound telemetry events."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

from datastore.realtime_db import MockRealtimeDatabase, build_default_database
from models.records import Reading
from services.validator import RejectionReason, validate
from settings import get_settings

logger = logging.getLogger(__name__)


class StoreWriteError(RuntimeError):
    """Raised when an accepted reading could not be appended to its log."""


@dataclass(frozen=True)
class IngestOutcome:
    reading: Optional[Reading] = None
    key: Optional[str] = None
    reason: Optional[RejectionReason] = None

    @property
    def accepted(self) -> bool:
        return self.reading is not None


class IngestionPipeline:
    """Appends accepted readings to ``<telemetry_node>/<device_id>``.

    Rejected payloads are dropped without a write and without an error: the
    message counts as consumed. Duplicate deliveries of one message append
    duplicate entries.
    """

    def __init__(
        self,
        database: MockRealtimeDatabase,
        telemetry_node: str = "devices-telemetry",
        workers: int = 4,
    ) -> None:
        self.database = database
        self.telemetry_node = telemetry_node.strip("/")
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest")

    def ingest(self, device_id: Any, timestamp: Any, raw_payload: Any) -> IngestOutcome:
        outcome = validate(raw_payload, device_id=device_id, timestamp=timestamp)
        if outcome.reading is None:
            return IngestOutcome(reason=outcome.reason)

        reading = outcome.reading
        logger.info(
            "Telemetry received",
            extra={
                "device_id": reading.device_id,
                "temperature": reading.temperature,
                "humidity": reading.humidity,
                "timestamp": reading.timestamp,
            },
        )

        path = self.log_path(reading.device_id)
        try:
            key = self.database.push(path, reading.to_log_entry())
        except Exception as exc:
            logger.exception(
                "Failed to append reading",
                extra={"device_id": reading.device_id, "path": path},
            )
            raise StoreWriteError(f"Could not append reading to {path!r}.") from exc
        return IngestOutcome(reading=reading, key=key)

    def submit(self, device_id: Any, timestamp: Any, raw_payload: Any) -> Future[IngestOutcome]:
        """Schedule ``ingest`` on the worker pool."""
        return self.executor.submit(self.ingest, device_id, timestamp, raw_payload)

    def log_path(self, device_id: str) -> str:
        return f"{self.telemetry_node}/{device_id}"

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)


@lru_cache
def build_default_pipeline(workers: Optional[int] = None) -> IngestionPipeline:
    settings = get_settings()
    return IngestionPipeline(
        database=build_default_database(),
        telemetry_node=settings.telemetry_node,
        workers=workers or settings.ingest_workers,
    )
