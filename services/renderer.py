"""Render collaborator backing the browser dashboard."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Protocol

from app.schemas import RenderDataset

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    def render(self, dataset: RenderDataset) -> None:
        ...

    def latest(self) -> RenderDataset:
        ...


class DashboardRenderer:
    """Keeps the latest dataset for the dashboard page to redraw from.

    Every ``render`` call is a full redraw: the previous dataset is replaced,
    never patched, and the revision moves forward so pollers can tell.
    """

    def __init__(self) -> None:
        self._latest = RenderDataset()
        self._revision = 0
        self._lock = Lock()

    @property
    def revision(self) -> int:
        return self._revision

    def render(self, dataset: RenderDataset) -> None:
        with self._lock:
            self._revision += 1
            revision = self._revision
            self._latest = dataset.model_copy(update={"revision": revision}, deep=True)
        logger.debug("Dataset rendered", extra={"revision": revision})

    def latest(self) -> RenderDataset:
        with self._lock:
            return self._latest.model_copy(deep=True)
