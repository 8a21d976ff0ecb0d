"""In-process stand-in for a realtime JSON tree database.

Nodes are addressed by slash-separated paths. Children of a node iterate in
key order, and ``push`` generates keys that sort in insertion order, so an
append log is simply a node whose children were all created with ``push``.
"""

from __future__ import annotations

import copy
import json
import logging
import time
from functools import lru_cache
from pathlib import Path
from threading import Lock, RLock
from typing import Any, Callable, Dict, List, Optional, Tuple

from settings import get_settings

logger = logging.getLogger(__name__)

LogEntries = List[Tuple[str, Any]]
ChangeCallback = Callable[[LogEntries], None]


def _split_path(path: str) -> Tuple[str, ...]:
    parts = tuple(part for part in path.strip("/").split("/") if part)
    if not parts:
        raise ValueError("Path must name at least one node.")
    return parts


def _normalize(value: Any) -> Any:
    """Coerce ``value`` into plain JSON types, rejecting anything else."""
    return json.loads(json.dumps(value))


def _ordered(node: Any) -> Any:
    if isinstance(node, dict):
        return {key: _ordered(node[key]) for key in sorted(node)}
    return copy.deepcopy(node)


class Subscription:
    """A change listener on one path, optionally limited to its last children."""

    def __init__(
        self,
        database: "MockRealtimeDatabase",
        path: str,
        callback: ChangeCallback,
        limit: Optional[int] = None,
    ) -> None:
        self.path = path
        self.parts = _split_path(path)
        self.limit = limit
        self._database = database
        self._callback = callback
        self._dispatch_lock = RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._database._remove_subscription(self)

    def covers(self, parts: Tuple[str, ...]) -> bool:
        depth = min(len(parts), len(self.parts))
        return parts[:depth] == self.parts[:depth]

    def deliver(self) -> None:
        # The snapshot is taken inside the dispatch lock so the last delivery
        # always reflects the newest write.
        with self._dispatch_lock:
            if not self._active:
                return
            entries = self._database.limit_to_last(self.path, self.limit)
            try:
                self._callback(entries)
            except Exception:
                logger.exception(
                    "Subscription callback failed",
                    extra={"path": self.path, "entry_count": len(entries)},
                )


class MockRealtimeDatabase:

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self._root: Dict[str, Any] = {}
        self._subscriptions: List[Subscription] = []
        self._clock = clock
        self._last_push_ms = 0
        self._push_sequence = 0
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def get(self, path: str) -> Any:
        """Return a deep copy of the node at ``path`` or ``None`` when absent."""
        parts = _split_path(path)
        with self._lock:
            return _ordered(self._find(parts))

    def set(self, path: str, value: Any) -> None:
        """Replace the node at ``path``; ``None`` removes it."""
        parts = _split_path(path)
        normalized = _normalize(value)
        with self._lock:
            self._write(parts, normalized)
            self._persist()
            affected = self._affected(parts)
        self._notify(affected)

    def push(self, path: str, value: Any) -> str:
        """Append ``value`` as a new child of ``path`` and return its key."""
        parts = _split_path(path)
        normalized = _normalize(value)
        with self._lock:
            key = self._next_push_key()
            self._write(parts + (key,), normalized)
            self._persist()
            affected = self._affected(parts)
        self._notify(affected)
        return key

    def limit_to_last(self, path: str, limit: Optional[int] = None) -> LogEntries:
        """Return ``(key, value)`` pairs for the last ``limit`` children in key order."""
        if limit is not None and limit <= 0:
            raise ValueError("limit must be a positive integer.")
        parts = _split_path(path)
        with self._lock:
            node = self._find(parts)
            if not isinstance(node, dict):
                return []
            keys = sorted(node)
            if limit is not None:
                keys = keys[-limit:]
            return [(key, copy.deepcopy(node[key])) for key in keys]

    def subscribe(
        self,
        path: str,
        callback: ChangeCallback,
        limit: Optional[int] = None,
    ) -> Subscription:
        """Call ``callback`` now and after every change under ``path``."""
        if limit is not None and limit <= 0:
            raise ValueError("limit must be a positive integer.")
        subscription = Subscription(self, path, callback, limit=limit)
        with self._lock:
            self._subscriptions.append(subscription)
        subscription.deliver()
        return subscription

    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                pass

    def _affected(self, parts: Tuple[str, ...]) -> List[Subscription]:
        return [sub for sub in self._subscriptions if sub.covers(parts)]

    @staticmethod
    def _notify(subscriptions: List[Subscription]) -> None:
        for subscription in subscriptions:
            subscription.deliver()

    def _find(self, parts: Tuple[str, ...]) -> Any:
        node: Any = self._root
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def _write(self, parts: Tuple[str, ...], value: Any) -> None:
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[part] = child
            node = child
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = value

    def _next_push_key(self) -> str:
        now_ms = int(self._clock() * 1000)
        if now_ms > self._last_push_ms:
            self._last_push_ms = now_ms
            self._push_sequence = 0
        else:
            self._push_sequence += 1
        return f"{self._last_push_ms:013d}{self._push_sequence:06d}"

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        self.persistence_path.write_text(json.dumps(self._root, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable database file",
                extra={"path": str(self.persistence_path)},
            )
            data = {}

        if isinstance(data, dict):
            self._root = data


@lru_cache
def build_default_database(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockRealtimeDatabase:
    settings = get_settings()
    database_name = settings.database_name if name is None else name
    database_path = settings.database_persistence_path if path is None else path
    persistence = Path(database_path) if database_path else None
    return MockRealtimeDatabase(name=database_name, persistence_path=persistence)
