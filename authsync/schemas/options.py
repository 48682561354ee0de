from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from authsync.clients.session_state import UNSET


class BroadcastOptions(BaseModel):
    session: bool = Field(default=True, description="Tell other contexts when the session is refetched")
    sign_out: bool = Field(
        default=True, alias="signOut", description="Tell other contexts about a sign-out"
    )

    model_config = ConfigDict(populate_by_name=True)


class SyncOptions(BaseModel):
    """Per-provider synchronization behaviour."""

    stale_time: int = Field(default=0, ge=0, description="Seconds before a cached session is revalidated")
    refetch_interval: float = Field(default=0, ge=0, description="Polling period in seconds, 0 disables")
    refetch_on_window_focus: bool = True
    broadcast: BroadcastOptions = Field(default_factory=BroadcastOptions)
    base_url: str | None = None
    base_path: str | None = None
    session: Any = Field(default=UNSET, description="Initial session; skips the first fetch when given")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("broadcast", mode="before")
    @classmethod
    def _expand_broadcast_flag(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return BroadcastOptions(session=value, sign_out=value)
        if value is None:
            return BroadcastOptions()
        return value

    @property
    def has_initial_session(self) -> bool:
        return self.session is not UNSET
