"""Startup wiring from the device registry to the rendered charts."""

from __future__ import annotations

import logging
from functools import lru_cache
from threading import Lock
from typing import List, Optional

from datastore.realtime_db import build_default_database
from models.records import DeviceRecord, DeviceWindow
from services.live_window import LiveWindowStore
from services.projector import PlotProjector
from services.registry import DeviceRegistry
from services.renderer import DashboardRenderer, Renderer
from settings import get_settings

logger = logging.getLogger(__name__)


class LiveDashboard:
    """Two-phase startup: load the registry, then subscribe its devices.

    An empty registry leaves the dashboard idle instead of failing.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        store: LiveWindowStore,
        renderer: Renderer,
        timestamp_format: str = "%Y-%m-%d %H:%M:%S",
    ) -> None:
        self.registry = registry
        self.store = store
        self.renderer = renderer
        self.timestamp_format = timestamp_format
        self.projector: Optional[PlotProjector] = None
        self._devices: List[DeviceRecord] = []
        self._render_lock = Lock()

    @property
    def devices(self) -> List[DeviceRecord]:
        return list(self._devices)

    @property
    def running(self) -> bool:
        return self.store.active

    def start(self) -> bool:
        if self.store.active:
            return True

        self._devices = self.registry.load()
        if not self._devices:
            logger.warning("No device id was found.")
            return False

        self.projector = PlotProjector(self._devices, timestamp_format=self.timestamp_format)
        # Redraws are driven by the listener, so no event stream is kept.
        self.store.subscribe(
            [device.device_id for device in self._devices],
            listener=self._on_window,
            stream=False,
        )
        return True

    def stop(self) -> None:
        self.store.unsubscribe()

    def _on_window(self, device_id: str, window: DeviceWindow) -> None:
        projector = self.projector
        if projector is None:
            return
        # Serialized so a slower projection never overwrites a newer one.
        with self._render_lock:
            try:
                dataset = projector.project(self.store.windows())
                self.renderer.render(dataset)
            except Exception:
                logger.exception(
                    "Failed to redraw charts",
                    extra={"device_id": device_id, "entry_count": len(window.entries)},
                )


@lru_cache
def build_default_dashboard() -> LiveDashboard:
    """Factory that wires the dashboard with the default database."""
    settings = get_settings()
    database = build_default_database()
    return LiveDashboard(
        registry=DeviceRegistry(database, node=settings.registry_node),
        store=LiveWindowStore(
            database,
            telemetry_node=settings.telemetry_node,
            max_size=settings.window_size,
        ),
        renderer=DashboardRenderer(),
        timestamp_format=settings.timestamp_format,
    )
