"""Shared key-value store with change notification across execution contexts.

Mirrors browser ``localStorage`` semantics: every context gets its own
``StorageArea`` view over one ``SharedStorage``, writes are visible to all of
them, and change events fire only in the *other* views, never in the writer.
Writing the value a key already holds fires nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from authsync.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    key: str
    new_value: str | None
    old_value: str | None


StorageListener = Callable[[StorageEvent], None]


class SharedStorage:
    """The origin-wide backing store. Last write wins, no locking."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._areas: list[StorageArea] = []

    def area(self) -> StorageArea:
        area = StorageArea(self)
        self._areas.append(area)
        return area

    def _detach(self, area: StorageArea) -> None:
        if area in self._areas:
            self._areas.remove(area)

    def _write(self, writer: StorageArea, key: str, value: str | None) -> None:
        old_value = self._data.get(key)
        if old_value == value:
            return
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value

        event = StorageEvent(key=key, new_value=value, old_value=old_value)
        for area in list(self._areas):
            if area is not writer:
                area._dispatch(event)


class StorageArea:
    """One execution context's handle on the shared store."""

    def __init__(self, storage: SharedStorage) -> None:
        self._storage = storage
        self._listeners: list[StorageListener] = []

    def get_item(self, key: str) -> str | None:
        return self._storage._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._storage._write(self, key, value)

    def remove_item(self, key: str) -> None:
        self._storage._write(self, key, None)

    def add_listener(self, listener: StorageListener) -> Callable[[], None]:
        if listener not in self._listeners:
            self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: StorageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def close(self) -> None:
        self._listeners.clear()
        self._storage._detach(self)

    def _dispatch(self, event: StorageEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("storage_listener_failed", key=event.key)
