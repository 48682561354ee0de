from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from authsync.schemas.enums import ProviderType, SessionStatus

Session = dict[str, Any]


class BroadcastMessage(BaseModel):
    """Payload written to the shared storage key for other contexts to pick up."""

    reason: str
    timestamp: int
    origin_id: str | None = Field(default=None, alias="originId")

    model_config = ConfigDict(populate_by_name=True)


class Provider(BaseModel):
    id: str
    name: str = ""
    type: ProviderType | str = Field(default=ProviderType.OAUTH, union_mode="left_to_right")
    signin_url: str | None = Field(default=None, alias="signinUrl")
    callback_url: str | None = Field(default=None, alias="callbackUrl")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def supports_return(self) -> bool:
        """Credentials and email sign-in can report back without a redirect."""
        return self.type in (ProviderType.CREDENTIALS, ProviderType.EMAIL)


class SignInResult(BaseModel):
    url: str | None = None
    ok: bool = False
    status: int | None = None
    error: str | None = None


class SignOutResult(BaseModel):
    url: str | None = None
    ok: bool = False


class SessionSnapshot(BaseModel):
    session: Session | None = None
    status: SessionStatus = SessionStatus.LOADING

    model_config = ConfigDict(frozen=True)

    @property
    def loading(self) -> bool:
        return self.status is SessionStatus.LOADING
