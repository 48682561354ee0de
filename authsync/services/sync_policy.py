"""Decides whether a trigger warrants a round trip to the session endpoint."""

from __future__ import annotations

from authsync.clients.session_state import UNSET, SyncState
from authsync.schemas.enums import Trigger

# Triggers that revalidate even when no staleness window is configured
FORCED_TRIGGERS = frozenset({Trigger.TIMER, Trigger.REFETCH, Trigger.EXPLICIT_CALL})

# Triggers whose refetch must not be echoed to other contexts
SILENT_TRIGGERS = frozenset({Trigger.STORAGE_EVENT, Trigger.REFETCH})


def should_sync(state: SyncState, trigger: Trigger, now: int) -> bool:
    if trigger is Trigger.STORAGE_EVENT:
        return True
    if state.session is UNSET:
        return True
    if state.stale_time == 0:
        return trigger in FORCED_TRIGGERS
    # A cached "signed out" is trusted until another context says otherwise
    if state.session is None:
        return False
    if now < state.last_sync + state.stale_time:
        return False
    return True


def should_broadcast(trigger: Trigger, silent: bool = False) -> bool:
    return not silent and trigger not in SILENT_TRIGGERS
