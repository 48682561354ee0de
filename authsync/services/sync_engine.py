from __future__ import annotations

from typing import Any, Callable

import httpx

from authsync.clients.auth_api import AuthApiClient
from authsync.clients.session_state import UNSET, SyncState
from authsync.core.exceptions import FetchError
from authsync.core.logging import get_logger
from authsync.schemas.enums import BroadcastReason, SessionStatus, Trigger
from authsync.schemas.messages import (
    BroadcastMessage,
    Session,
    SessionSnapshot,
    SignInResult,
    SignOutResult,
)
from authsync.schemas.options import SyncOptions
from authsync.services.broadcast import BroadcastChannel
from authsync.services.sync_policy import should_broadcast, should_sync
from authsync.utils.clock import Clock, now

logger = get_logger(__name__)

SessionListener = Callable[[SessionSnapshot], None]


class SyncEngine:
    """Keeps one context's SyncState in line with the server and with other contexts.

    At most one session fetch is in flight at a time. Triggers that arrive
    while a fetch is pending are dropped, not queued.
    """

    def __init__(
        self,
        state: SyncState,
        api: AuthApiClient,
        channel: BroadcastChannel | None = None,
        options: SyncOptions | None = None,
        clock: Clock = now,
    ) -> None:
        self._state = state
        self._api = api
        self._channel = channel
        self._options = options or SyncOptions()
        self._clock = clock
        self._listeners: list[SessionListener] = []
        # Bumped on every local sign-out so a fetch started earlier cannot resurrect the session
        self._generation = 0
        self._log = logger.bind(instance_id=state.instance_id)

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def session(self) -> Session | None:
        session = self._state.session
        return None if session is UNSET else session

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    def snapshot(self) -> SessionSnapshot:
        return self._state.snapshot()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        if listener not in self._listeners:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def refresh(
        self, trigger: Trigger = Trigger.EXPLICIT_CALL, *, silent: bool = False
    ) -> Session | None:
        """Revalidate the cached session if the sync policy asks for it.

        Never raises on fetch failures: the last known session keeps being served.
        """
        state = self._state
        if state.pending:
            self._log.debug("refresh_dropped", trigger=trigger.value)
            return self.session

        current = self._clock()
        if not should_sync(state, trigger, current):
            return self.session

        previous_session = state.session
        previous_sync = state.last_sync
        generation = self._generation

        state.pending = True
        if state.session is UNSET:
            state.session = None
        # Stamp before the request so triggers during the round trip see a fresh cache
        state.last_sync = current

        failure: FetchError | None = None
        try:
            session = await self._api.fetch_session()
        except FetchError as exc:
            failure = exc
        finally:
            state.pending = False

        if failure is not None:
            self._log.error(
                "session_fetch_failed",
                trigger=trigger.value,
                path=failure.path,
                status_code=failure.status_code,
                error=failure.message,
                detail=failure.detail,
            )
            if generation == self._generation:
                state.session = previous_session
                state.last_sync = previous_sync
            self._settle_loading()
            return self.session

        if generation != self._generation:
            self._log.info("session_fetch_discarded", trigger=trigger.value)
            return self.session

        state.session = session
        state.loading = False
        self._log.debug(
            "session_synced", trigger=trigger.value, authenticated=session is not None
        )
        self._notify()

        if self._options.broadcast.session and should_broadcast(trigger, silent):
            self._post(BroadcastReason.SESSION)
        return session

    async def receive(self, message: BroadcastMessage) -> None:
        """Handle a notification from another context."""
        self._log.debug("broadcast_received", reason=message.reason, origin_id=message.origin_id)
        state = self._state
        # A fetch in flight holds a None placeholder but may still land a session
        is_sign_out = message.reason == BroadcastReason.SIGN_OUT.value
        if is_sign_out and (state.has_session or state.pending):
            self._clear_session(stamp=False)
        await self.refresh(Trigger.STORAGE_EVENT)

    async def sign_out(self, callback_url: str | None = None) -> SignOutResult:
        """Sign out remotely, then clear the local session whatever the outcome.

        The ``signOut`` broadcast goes out even when session broadcasts are
        disabled, so every context drops the session.
        """
        result = SignOutResult(url=callback_url)
        try:
            csrf_token = await self._api.fetch_csrf_token()
            result = await self._api.post_sign_out(
                {"csrfToken": csrf_token, "callbackUrl": callback_url, "json": True}
            )
        except FetchError as exc:
            self._log.warning(
                "sign_out_request_failed", path=exc.path, error=exc.message, detail=exc.detail
            )

        self._clear_session(stamp=True)
        self._post(BroadcastReason.SIGN_OUT)
        self._log.info("signed_out", remote_ok=result.ok)

        if not result.url:
            result = result.model_copy(update={"url": callback_url})
        return result

    async def sign_in(
        self,
        provider: str | None = None,
        callback_url: str | None = None,
        redirect: bool = True,
        authorization_params: dict[str, str] | None = None,
        **form_fields: Any,
    ) -> SignInResult:
        """Start a sign-in with ``provider``.

        The returned ``url`` is where the caller should navigate next. With
        ``redirect=False``, credentials and email providers report the outcome
        instead and a successful sign-in refreshes the session right away.
        """
        try:
            providers = await self._api.fetch_providers()
        except FetchError as exc:
            self._log.error("providers_fetch_failed", error=exc.message, detail=exc.detail)
            providers = None

        if not providers:
            return SignInResult(url=self._api.error_page_url())

        if provider is None or provider not in providers:
            return SignInResult(url=self._api.sign_in_page_url(callback_url or ""))

        selected = providers[provider]
        try:
            csrf_token = await self._api.fetch_csrf_token()
            response = await self._api.post_sign_in(
                selected,
                {**form_fields, "csrfToken": csrf_token, "callbackUrl": callback_url, "json": True},
                authorization_params=authorization_params,
            )
        except FetchError as exc:
            self._log.error(
                "sign_in_request_failed", provider=provider, error=exc.message, detail=exc.detail
            )
            return SignInResult(ok=False, error=exc.message, status=exc.status_code)

        if redirect or not selected.supports_return:
            return SignInResult(
                url=response.url or callback_url, ok=response.ok, status=response.status
            )

        error = _query_param(response.url, "error")
        if response.ok:
            await self.refresh(Trigger.STORAGE_EVENT)

        self._log.info("sign_in_completed", provider=provider, ok=response.ok, error=error)
        return SignInResult(
            url=None if error else response.url,
            ok=response.ok,
            status=response.status,
            error=error,
        )

    def _clear_session(self, stamp: bool) -> None:
        self._generation += 1
        self._state.session = None
        self._state.loading = False
        if stamp:
            self._state.last_sync = self._clock()
        self._notify()

    def _settle_loading(self) -> None:
        if self._state.loading:
            self._state.loading = False
            self._notify()

    def _post(self, reason: BroadcastReason) -> None:
        if self._channel is not None:
            self._channel.post(reason)

    def _notify(self) -> None:
        snapshot = self._state.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                self._log.exception("session_listener_failed")


def _query_param(url: str | None, name: str) -> str | None:
    if not url:
        return None
    try:
        return httpx.URL(url).params.get(name)
    except httpx.InvalidURL:
        return None
