from __future__ import annotations

import secrets
import time
from typing import Any, Final

from authsync.schemas.enums import SessionStatus
from authsync.schemas.messages import Session, SessionSnapshot


class _Unset:
    """Marker for a session that has never been fetched."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset()


def new_instance_id() -> str:
    """Random id for one execution context, used to spot self-originated broadcasts."""
    return secrets.token_hex(8) + format(time.time_ns() // 1_000_000, "x")


class SyncState:
    """Last known session for one execution context.

    Only the sync engine mutates this object. Event sources and UI code read it.
    """

    def __init__(
        self,
        stale_time: int = 0,
        session: Session | None | _Unset = UNSET,
        last_sync: int = 0,
        instance_id: str | None = None,
    ) -> None:
        if stale_time < 0:
            raise ValueError("stale_time must be >= 0")
        self.session: Any = session
        self.last_sync = last_sync
        self.stale_time = stale_time
        self.instance_id = instance_id or new_instance_id()
        self.pending = False
        self.loading = session is UNSET

    @property
    def has_session(self) -> bool:
        return self.session is not UNSET and self.session is not None

    @property
    def status(self) -> SessionStatus:
        if self.loading:
            return SessionStatus.LOADING
        if self.has_session:
            return SessionStatus.AUTHENTICATED
        return SessionStatus.UNAUTHENTICATED

    def snapshot(self) -> SessionSnapshot:
        session = None if self.session is UNSET else self.session
        return SessionSnapshot(session=session, status=self.status)

    def __repr__(self) -> str:
        return (
            f"SyncState(session={self.session!r}, last_sync={self.last_sync}, "
            f"stale_time={self.stale_time}, pending={self.pending})"
        )
