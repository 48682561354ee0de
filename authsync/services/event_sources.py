from __future__ import annotations

import asyncio
import contextlib
from typing import Callable

from authsync.clients.window import BLUR, FOCUS, VISIBILITY_CHANGE, HostWindow
from authsync.core.logging import get_logger
from authsync.schemas.enums import BroadcastReason, Trigger
from authsync.schemas.messages import BroadcastMessage
from authsync.schemas.options import SyncOptions
from authsync.services.broadcast import BroadcastChannel
from authsync.services.sync_engine import SyncEngine

logger = get_logger(__name__)

_WINDOW_TRIGGERS = {
    FOCUS: Trigger.FOCUS,
    BLUR: Trigger.BLUR,
    VISIBILITY_CHANGE: Trigger.VISIBILITY,
}


class EventSources:
    """Turns mount, window, timer and broadcast occurrences into engine refreshes.

    Host callbacks are synchronous, so each one schedules the refresh as a task
    on the running loop. ``detach()`` releases every registration as a unit.
    """

    def __init__(
        self,
        engine: SyncEngine,
        options: SyncOptions,
        window: HostWindow | None = None,
        channel: BroadcastChannel | None = None,
    ) -> None:
        self._engine = engine
        self._options = options
        self._window = window
        self._channel = channel
        self._attached = False
        self._timer: asyncio.Task[None] | None = None
        self._unsubscribe_broadcast: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def attached(self) -> bool:
        return self._attached

    async def attach(self) -> None:
        if self._attached:
            return
        self._attached = True

        if self._channel is not None:
            self._unsubscribe_broadcast = self._channel.subscribe(self._on_broadcast)

        if self._window is not None and self._options.refetch_on_window_focus:
            for event_type in _WINDOW_TRIGGERS:
                self._window.add_event_listener(event_type, self._on_window_event)

        if self._options.refetch_interval > 0:
            self._timer = asyncio.create_task(self._poll(self._options.refetch_interval))

        try:
            await self._engine.refresh(Trigger.INITIAL)
        except Exception:
            await self.detach()
            raise

    async def detach(self) -> None:
        if not self._attached:
            return
        self._attached = False

        if self._unsubscribe_broadcast is not None:
            self._unsubscribe_broadcast()
            self._unsubscribe_broadcast = None

        if self._window is not None:
            for event_type in _WINDOW_TRIGGERS:
                self._window.remove_event_listener(event_type, self._on_window_event)

        if self._timer is not None:
            self._timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer
            self._timer = None

        # In-flight refreshes are not cancelled, only waited for
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait for refreshes scheduled by host callbacks to finish."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _on_window_event(self, event_type: str) -> None:
        if event_type == VISIBILITY_CHANGE and self._window is not None and self._window.hidden:
            return
        self._spawn(self._engine.refresh(_WINDOW_TRIGGERS[event_type]))

    def _on_broadcast(self, message: BroadcastMessage) -> None:
        broadcast = self._options.broadcast
        if message.reason == BroadcastReason.SIGN_OUT.value:
            wanted = broadcast.sign_out
        else:
            wanted = broadcast.session
        if wanted:
            self._spawn(self._engine.receive(message))

    async def _poll(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            # Keep-alive only matters while somebody is signed in
            if not self._engine.state.has_session:
                continue
            try:
                await self._engine.refresh(Trigger.TIMER, silent=True)
            except Exception:
                logger.exception("session_poll_failed")

    def _spawn(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("event_dropped_no_loop")
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
