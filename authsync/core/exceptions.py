from __future__ import annotations


class AuthSyncError(Exception):
    """Base exception for all session synchronization errors."""

    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, detail: str | None = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)


class FetchError(AuthSyncError):
    """Network failure, non-2xx status or unparseable body from the auth API."""

    error_code = "FETCH_FAILED"

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        path: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.path = path
        self.status_code = status_code
        super().__init__(message, detail)


class BroadcastParseError(AuthSyncError):
    error_code = "BROADCAST_PARSE_FAILED"
