"""Device id to display alias mapping, read once per process."""

from __future__ import annotations

import logging
from typing import List, Optional

from datastore.realtime_db import MockRealtimeDatabase
from models.records import DeviceRecord

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """Reads the registry node of the database.

    Each child key is a tracked device id. A value of ``true`` keeps the id as
    its display alias; a non-empty string is used as the alias instead. The
    result is cached: changes to the node after the first ``load`` are not
    picked up until the process restarts.
    """

    def __init__(self, database: MockRealtimeDatabase, node: str = "devices-ids") -> None:
        self.database = database
        self.node = node
        self._records: Optional[List[DeviceRecord]] = None

    def load(self) -> List[DeviceRecord]:
        if self._records is not None:
            return list(self._records)

        raw = self.database.get(self.node)
        records: List[DeviceRecord] = []
        if isinstance(raw, dict):
            for device_id, value in raw.items():
                alias = self._resolve_alias(device_id, value)
                if alias is None:
                    logger.warning(
                        "Skipping registry entry without alias",
                        extra={"device_id": device_id, "path": self.node},
                    )
                    continue
                records.append(DeviceRecord(device_id=device_id, alias=alias))
        elif raw is not None:
            logger.warning("Registry node is not a mapping", extra={"path": self.node})

        self._records = records
        logger.info(
            "Loaded device registry",
            extra={"path": self.node, "device_count": len(records)},
        )
        return list(records)

    @staticmethod
    def _resolve_alias(device_id: str, value: object) -> Optional[str]:
        if value is True:
            return device_id
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None
