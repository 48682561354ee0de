from __future__ import annotations

from enum import Enum


class Trigger(str, Enum):
    INITIAL = "initial"
    STORAGE_EVENT = "storage"
    FOCUS = "focus"
    BLUR = "blur"
    VISIBILITY = "visibilitychange"
    TIMER = "timer"
    REFETCH = "refetch"
    EXPLICIT_CALL = "explicit"


class BroadcastReason(str, Enum):
    SESSION = "session"
    SIGN_OUT = "signOut"


class SessionStatus(str, Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class ProviderType(str, Enum):
    OAUTH = "oauth"
    EMAIL = "email"
    CREDENTIALS = "credentials"
