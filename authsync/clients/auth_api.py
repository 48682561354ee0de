"""HTTP calls against the auth API: session, CSRF token, providers, sign-in and sign-out.

Every method either returns parsed JSON or raises FetchError. Deciding what a
failure means for the cached session is the sync engine's job.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from authsync.config import Settings
from authsync.core.exceptions import FetchError
from authsync.core.logging import get_logger
from authsync.schemas.messages import Provider, Session, SignInResult, SignOutResult
from authsync.utils.retry import with_retry
from authsync.utils.url import ParsedUrl, parse_url

logger = get_logger(__name__)

_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


def resolve_api_url(
    settings: Settings, base_url: str | None = None, base_path: str | None = None
) -> ParsedUrl:
    """Work out where the auth API lives.

    The internal URL wins for server-to-server calls, then the public URL, then
    the Vercel host. Explicit ``base_url``/``base_path`` override the result.
    """
    if not (settings.AUTH_URL or settings.AUTH_URL_INTERNAL or base_url):
        logger.warning(
            "configuration_warning",
            setting="AUTH_URL",
            detail="AUTH_URL environment variable not set, using default",
        )

    host = parse_url(settings.AUTH_URL_INTERNAL or settings.AUTH_URL or settings.VERCEL_URL)
    path = parse_url(settings.AUTH_URL_INTERNAL or settings.AUTH_URL)
    return ParsedUrl(
        base_url=(base_url or host.base_url).rstrip("/"),
        base_path=base_path or path.base_path,
    )


class AuthApiClient:
    """Thin JSON client for the auth endpoints."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        base_url: str | None = None,
        base_path: str | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._location = resolve_api_url(settings, base_url=base_url, base_path=base_path)

    @property
    def api_url(self) -> str:
        return self._location.api_url

    async def fetch_session(self, cookie: str | None = None) -> Session | None:
        return await self._get_json("session", cookie=cookie)

    async def fetch_csrf_token(self, cookie: str | None = None) -> str | None:
        data = await self._get_json("csrf", cookie=cookie)
        if not data:
            return None
        return data.get("csrfToken")

    async def fetch_providers(self) -> dict[str, Provider] | None:
        data = await self._get_json("providers")
        if not data:
            return None
        try:
            return {key: Provider.model_validate(value) for key, value in data.items()}
        except ValidationError as exc:
            raise FetchError(
                message="auth api returned malformed providers",
                detail=str(exc)[:200],
                path="providers",
            ) from exc

    async def post_sign_in(
        self,
        provider: Provider,
        form: dict[str, Any],
        authorization_params: dict[str, str] | None = None,
    ) -> SignInResult:
        action = "callback" if provider.type == "credentials" else "signin"
        url = f"{self.api_url}/{action}/{provider.id}"
        resp = await self._post_form(url, form, params=authorization_params)
        data = self._decode(resp, path=f"{action}/{provider.id}", require_success=False)
        return SignInResult(
            url=(data or {}).get("url"),
            ok=resp.is_success,
            status=resp.status_code,
        )

    async def post_sign_out(self, form: dict[str, Any]) -> SignOutResult:
        resp = await self._post_form(f"{self.api_url}/signout", form)
        data = self._decode(resp, path="signout", require_success=False)
        return SignOutResult(url=(data or {}).get("url"), ok=resp.is_success)

    def sign_in_page_url(self, callback_url: str) -> str:
        query = httpx.QueryParams({"callbackUrl": callback_url})
        return f"{self.api_url}/signin?{query}"

    def error_page_url(self) -> str:
        return f"{self.api_url}/error"

    async def _get_json(self, path: str, cookie: str | None = None) -> dict[str, Any] | None:
        headers = {"cookie": cookie} if cookie else None
        url = f"{self.api_url}/{path}"
        try:
            resp = await self._retrying(self._client.get)(url, headers=headers)
        except httpx.HTTPError as exc:
            raise FetchError(
                message="auth api request failed",
                detail=str(exc) or type(exc).__name__,
                path=path,
            ) from exc
        return self._decode(resp, path=path)

    async def _post_form(
        self, url: str, form: dict[str, Any], params: dict[str, str] | None = None
    ) -> httpx.Response:
        body = {key: _form_value(value) for key, value in form.items() if value is not None}
        try:
            return await self._client.post(url, data=body, params=params, headers=_FORM_HEADERS)
        except httpx.HTTPError as exc:
            raise FetchError(
                message="auth api request failed",
                detail=str(exc) or type(exc).__name__,
                path=url.removeprefix(self.api_url + "/"),
            ) from exc

    def _retrying(self, func):
        return with_retry(
            max_retries=self._settings.MAX_RETRIES,
            backoff_factor=self._settings.BACKOFF_FACTOR,
        )(func)

    @staticmethod
    def _decode(
        resp: httpx.Response, path: str, require_success: bool = True
    ) -> dict[str, Any] | None:
        try:
            data = resp.json()
        except ValueError as exc:
            raise FetchError(
                message="auth api returned invalid JSON",
                detail=resp.text[:100],
                path=path,
                status_code=resp.status_code,
            ) from exc

        if require_success and not resp.is_success:
            raise FetchError(
                message=f"auth api responded with {resp.status_code}",
                detail=str(data)[:200],
                path=path,
                status_code=resp.status_code,
            )

        # An empty object means "nothing here", e.g. no active session
        if not data:
            return None
        if not isinstance(data, dict):
            raise FetchError(
                message="auth api returned unexpected payload",
                detail=type(data).__name__,
                path=path,
                status_code=resp.status_code,
            )
        return data


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
