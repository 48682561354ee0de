"""Cross-context notifications over a shared storage key.

Modelled on the browser BroadcastChannel API, built on storage events
instead so it works wherever a shared store with change notification exists.
Delivery is best effort: rapid writes of the same payload coalesce, and a
context without storage silently posts nothing.
"""

from __future__ import annotations

from typing import Callable

from pydantic import ValidationError

from authsync.clients.storage import StorageArea, StorageEvent
from authsync.core.exceptions import BroadcastParseError
from authsync.core.logging import get_logger
from authsync.schemas.enums import BroadcastReason
from authsync.schemas.messages import BroadcastMessage
from authsync.utils.clock import Clock, now

logger = get_logger(__name__)

MessageHandler = Callable[[BroadcastMessage], None]

DEFAULT_CHANNEL = "authsync.message"


class BroadcastChannel:
    def __init__(
        self,
        storage: StorageArea | None,
        instance_id: str,
        name: str = DEFAULT_CHANNEL,
        clock: Clock = now,
    ) -> None:
        self._storage = storage
        self._instance_id = instance_id
        self._name = name
        self._clock = clock
        self._subscriptions: dict[MessageHandler, Callable[[StorageEvent], None]] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def enabled(self) -> bool:
        return self._storage is not None

    def post(self, reason: BroadcastReason | str) -> BroadcastMessage | None:
        """Fire and forget. Returns the message written, or None when nothing was sent."""
        if self._storage is None:
            return None

        message = BroadcastMessage(
            reason=reason.value if isinstance(reason, BroadcastReason) else reason,
            timestamp=self._clock(),
            origin_id=self._instance_id,
        )
        try:
            self._storage.set_item(self._name, message.model_dump_json(by_alias=True))
        except Exception:
            logger.warning("broadcast_post_failed", channel=self._name, exc_info=True)
            return None
        logger.debug("broadcast_posted", channel=self._name, reason=message.reason)
        return message

    def subscribe(self, handler: MessageHandler) -> Callable[[], None]:
        """Call ``handler`` for messages posted by other contexts.

        Returns a callable that removes the subscription. Subscribing the same
        handler again reuses the existing registration.
        """
        if self._storage is None:
            return lambda: None

        if handler not in self._subscriptions:

            def on_storage(event: StorageEvent) -> None:
                message = self._accept(event)
                if message is not None:
                    handler(message)

            self._subscriptions[handler] = on_storage
            self._storage.add_listener(on_storage)

        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: MessageHandler) -> None:
        listener = self._subscriptions.pop(handler, None)
        if listener is not None and self._storage is not None:
            self._storage.remove_listener(listener)

    @staticmethod
    def parse(raw: str) -> BroadcastMessage:
        try:
            return BroadcastMessage.model_validate_json(raw)
        except ValidationError as exc:
            raise BroadcastParseError(
                message="malformed broadcast message", detail=raw[:100]
            ) from exc

    def _accept(self, event: StorageEvent) -> BroadcastMessage | None:
        if event.key != self._name or event.new_value is None:
            return None
        try:
            message = self.parse(event.new_value)
        except BroadcastParseError as exc:
            logger.debug("broadcast_message_dropped", channel=self._name, detail=exc.detail)
            return None
        if message.origin_id is not None and message.origin_id == self._instance_id:
            return None
        return message
