from __future__ import annotations

from typing import Callable

from authsync.core.logging import get_logger

logger = get_logger(__name__)

WindowListener = Callable[[str], None]

FOCUS = "focus"
BLUR = "blur"
VISIBILITY_CHANGE = "visibilitychange"


class HostWindow:
    """Focus and visibility signals of the context hosting a session provider.

    The embedding application calls ``focus()``, ``blur()`` and ``set_hidden()``
    as its own window or document changes. Registering the same listener twice
    for one event type keeps a single registration.
    """

    def __init__(self, hidden: bool = False) -> None:
        self.hidden = hidden
        self._listeners: dict[str, list[WindowListener]] = {}

    def add_event_listener(self, event_type: str, listener: WindowListener) -> None:
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, event_type: str, listener: WindowListener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_type: str | None = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(items) for items in self._listeners.values())

    def dispatch_event(self, event_type: str) -> None:
        for listener in list(self._listeners.get(event_type, [])):
            try:
                listener(event_type)
            except Exception:
                logger.exception("window_listener_failed", event_type=event_type)

    def focus(self) -> None:
        self.dispatch_event(FOCUS)

    def blur(self) -> None:
        self.dispatch_event(BLUR)

    def set_hidden(self, hidden: bool) -> None:
        if hidden == self.hidden:
            return
        self.hidden = hidden
        self.dispatch_event(VISIBILITY_CHANGE)
