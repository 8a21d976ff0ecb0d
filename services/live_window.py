"""Bounded per-device windows kept in sync with the telemetry append logs."""

from __future__ import annotations

import logging
import queue
from functools import partial
from threading import Lock
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from datastore.realtime_db import LogEntries, MockRealtimeDatabase, Subscription
from models.records import DeviceWindow, Reading

logger = logging.getLogger(__name__)

WindowEvent = Tuple[str, DeviceWindow]
WindowListener = Callable[[str, DeviceWindow], None]

_CLOSED = object()


class WindowStream:
    """Iterable of ``(device_id, window)`` events that ends on ``close``."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, event: WindowEvent) -> None:
        if not self._closed:
            self._queue.put(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(_CLOSED)

    def get(self, timeout: Optional[float] = None) -> Optional[WindowEvent]:
        """Next event, or ``None`` once the stream is closed and drained."""
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # Leave the marker for any other consumer.
            self._queue.put(_CLOSED)
            return None
        return item

    def __iter__(self) -> Iterator[WindowEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event


def materialize(device_id: str, entries: LogEntries, max_size: int) -> DeviceWindow:
    """Turn raw log children into a window ordered by timestamp."""
    readings: List[Reading] = []
    for key, value in entries:
        try:
            readings.append(
                Reading(
                    device_id=device_id,
                    timestamp=int(value["timestamp"]),
                    temperature=float(value["temperature"]),
                    humidity=int(value["humidity"]),
                )
            )
        except (KeyError, TypeError, ValueError):
            logger.warning(
                "Skipping malformed log entry",
                extra={"device_id": device_id, "path": key},
            )
    # Stable sort keeps push order for equal timestamps.
    readings.sort(key=lambda reading: reading.timestamp)
    return DeviceWindow(
        device_id=device_id,
        max_size=max_size,
        entries=tuple(readings[-max_size:]),
    )


class LiveWindowStore:
    """Owns one ``DeviceWindow`` per tracked device.

    Every store notification carries the full last-``max_size`` slice of the
    device log and replaces that device's window outright. Callbacks from a
    torn-down subscription are recognised by their generation and ignored.
    """

    def __init__(
        self,
        database: MockRealtimeDatabase,
        telemetry_node: str = "devices-telemetry",
        max_size: int = 750,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be a positive integer.")
        self.database = database
        self.telemetry_node = telemetry_node.strip("/")
        self.max_size = max_size
        self._windows: Dict[str, DeviceWindow] = {}
        self._subscriptions: List[Subscription] = []
        self._listener: Optional[WindowListener] = None
        self._stream: Optional[WindowStream] = None
        self._generation = 0
        self._active = False
        self._lock = Lock()

    @property
    def active(self) -> bool:
        return self._active

    def subscribe(
        self,
        device_ids: Iterable[str],
        listener: Optional[WindowListener] = None,
        stream: bool = True,
    ) -> Optional[WindowStream]:
        """Track ``device_ids``; the event stream is only built when ``stream`` is set."""
        ids = list(dict.fromkeys(device_ids))
        events = WindowStream() if stream else None
        with self._lock:
            if self._active:
                raise RuntimeError("Live window store is already subscribed.")
            self._generation += 1
            generation = self._generation
            self._active = True
            self._listener = listener
            self._stream = events
            self._windows = {
                device_id: DeviceWindow(device_id=device_id, max_size=self.max_size)
                for device_id in ids
            }

        for device_id in ids:
            path = f"{self.telemetry_node}/{device_id}"
            try:
                subscription = self.database.subscribe(
                    path,
                    partial(self._on_change, generation, device_id),
                    limit=self.max_size,
                )
            except Exception:
                logger.exception(
                    "Failed to subscribe to device log",
                    extra={"device_id": device_id, "path": path},
                )
                continue
            with self._lock:
                still_current = self._active and generation == self._generation
                if still_current:
                    self._subscriptions.append(subscription)
            if not still_current:
                subscription.cancel()

        logger.info("Subscribed to device logs", extra={"device_count": len(ids)})
        return events

    def unsubscribe(self) -> None:
        with self._lock:
            self._generation += 1
            self._active = False
            subscriptions, self._subscriptions = self._subscriptions, []
            stream, self._stream = self._stream, None
            self._listener = None
            self._windows = {}

        for subscription in subscriptions:
            subscription.cancel()
        if stream is not None:
            stream.close()
        if subscriptions:
            logger.info(
                "Unsubscribed from device logs",
                extra={"device_count": len(subscriptions)},
            )

    def windows(self) -> Mapping[str, DeviceWindow]:
        """Read-only snapshot of the current windows."""
        with self._lock:
            return MappingProxyType(dict(self._windows))

    def window(self, device_id: str) -> DeviceWindow:
        with self._lock:
            try:
                return self._windows[device_id]
            except KeyError:
                raise KeyError(f"Device {device_id!r} is not tracked.") from None

    def _on_change(self, generation: int, device_id: str, entries: LogEntries) -> None:
        window = materialize(device_id, entries, self.max_size)
        with self._lock:
            if not self._active or generation != self._generation:
                return
            self._windows[device_id] = window
            listener = self._listener
            stream = self._stream

        if stream is not None:
            stream.put((device_id, window))
        if listener is not None:
            try:
                listener(device_id, window)
            except Exception:
                logger.exception("Window listener failed", extra={"device_id": device_id})
