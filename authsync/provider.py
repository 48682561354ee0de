from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

import httpx

from authsync.clients.auth_api import AuthApiClient
from authsync.clients.http_client import close_http_client, create_http_client
from authsync.clients.session_state import SyncState
from authsync.clients.storage import StorageArea
from authsync.clients.window import HostWindow
from authsync.config import Settings
from authsync.core.logging import get_logger, setup_logging_from_settings
from authsync.schemas.enums import SessionStatus, Trigger
from authsync.schemas.messages import Session, SessionSnapshot, SignInResult, SignOutResult
from authsync.schemas.options import SyncOptions
from authsync.services.broadcast import BroadcastChannel
from authsync.services.event_sources import EventSources
from authsync.services.sync_engine import SessionListener, SyncEngine
from authsync.utils.clock import Clock, now

logger = get_logger(__name__)


class SessionProvider:
    """Wires state, API client, broadcast channel, engine and event sources for one context.

    ``start()`` mounts (first fetch, listeners, polling); ``close()`` unmounts
    and releases everything ``start()`` acquired.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        options: SyncOptions | None = None,
        storage: StorageArea | None = None,
        window: HostWindow | None = None,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = now,
        configure_logging: bool = False,
    ) -> None:
        self.settings = settings or Settings()
        self.options = options or SyncOptions()
        if configure_logging:
            setup_logging_from_settings(self.settings)

        self._owns_http_client = http_client is None
        self._http_client = http_client or create_http_client(self.settings, transport=transport)

        self.api = AuthApiClient(
            self._http_client,
            self.settings,
            base_url=self.options.base_url,
            base_path=self.options.base_path,
        )
        self.state = SyncState(
            stale_time=self.options.stale_time,
            session=self.options.session,
            last_sync=clock() if self.options.has_initial_session else 0,
        )
        self.channel = BroadcastChannel(
            storage,
            instance_id=self.state.instance_id,
            name=self.settings.BROADCAST_KEY,
            clock=clock,
        )
        self.engine = SyncEngine(
            self.state, self.api, channel=self.channel, options=self.options, clock=clock
        )
        self.events = EventSources(self.engine, self.options, window=window, channel=self.channel)

    @property
    def session(self) -> Session | None:
        return self.engine.session

    @property
    def status(self) -> SessionStatus:
        return self.engine.status

    def snapshot(self) -> SessionSnapshot:
        return self.engine.snapshot()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        return self.engine.subscribe(listener)

    async def refresh(self, trigger: Trigger = Trigger.EXPLICIT_CALL) -> Session | None:
        return await self.engine.refresh(trigger)

    async def sign_in(self, provider: str | None = None, **kwargs: Any) -> SignInResult:
        return await self.engine.sign_in(provider, **kwargs)

    async def sign_out(self, callback_url: str | None = None) -> SignOutResult:
        return await self.engine.sign_out(callback_url)

    async def start(self) -> SessionProvider:
        logger.info(
            "session_provider_starting",
            instance_id=self.state.instance_id,
            api_url=self.api.api_url,
            stale_time=self.options.stale_time,
            refetch_interval=self.options.refetch_interval,
            broadcast=self.channel.enabled,
        )
        try:
            await self.events.attach()
        except Exception:
            if self._owns_http_client:
                await close_http_client(self._http_client)
            raise
        return self

    async def close(self) -> None:
        await self.events.detach()
        if self._owns_http_client:
            await close_http_client(self._http_client)
        logger.info("session_provider_closed", instance_id=self.state.instance_id)

    async def __aenter__(self) -> SessionProvider:
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


@asynccontextmanager
async def session_provider(**kwargs: Any) -> AsyncIterator[SessionProvider]:
    provider = SessionProvider(**kwargs)
    await provider.start()
    try:
        yield provider
    finally:
        await provider.close()
