from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from authsync.clients.auth_api import AuthApiClient, resolve_api_url
from authsync.clients.http_client import create_http_client
from authsync.config import Settings
from authsync.core.exceptions import FetchError
from authsync.schemas.enums import ProviderType


def json_response(status_code: int, body, url: str = "http://testserver/api/auth/session"):
    return httpx.Response(status_code, json=body, request=httpx.Request("GET", url))


class TestResolveApiUrl:
    def test_public_url_is_used(self):
        location = resolve_api_url(Settings(AUTH_URL="https://app.example.com/auth"))
        assert location.api_url == "https://app.example.com/auth"

    def test_internal_url_wins(self):
        settings = Settings(
            AUTH_URL="https://app.example.com/api/auth",
            AUTH_URL_INTERNAL="http://auth:3000/internal",
        )
        assert resolve_api_url(settings).api_url == "http://auth:3000/internal"

    def test_vercel_host_with_default_path(self):
        settings = Settings(AUTH_URL="", AUTH_URL_INTERNAL="", VERCEL_URL="my-app.vercel.app")
        assert resolve_api_url(settings).api_url == "https://my-app.vercel.app/api/auth"

    def test_explicit_overrides(self):
        settings = Settings(AUTH_URL="https://app.example.com/api/auth")
        location = resolve_api_url(settings, base_url="http://localhost:4000/", base_path="/auth")
        assert location.api_url == "http://localhost:4000/auth"

    def test_missing_url_logs_warning_and_uses_default(self):
        settings = Settings(AUTH_URL="", AUTH_URL_INTERNAL="", VERCEL_URL="")
        with patch("authsync.clients.auth_api.logger") as mock_logger:
            location = resolve_api_url(settings)
        assert location.api_url == "http://localhost:3000/api/auth"
        assert mock_logger.warning.call_args.args[0] == "configuration_warning"


class TestAuthApiClient:
    @pytest.mark.asyncio
    async def test_fetch_session(self, settings, backend):
        async with create_http_client(settings, transport=backend.transport()) as http:
            api = AuthApiClient(http, settings)
            assert await api.fetch_session() == backend.session

    @pytest.mark.asyncio
    async def test_empty_session_object_becomes_none(self, settings, backend):
        backend.session = None
        async with create_http_client(settings, transport=backend.transport()) as http:
            api = AuthApiClient(http, settings)
            assert await api.fetch_session() is None

    @pytest.mark.asyncio
    async def test_error_status_raises_fetch_error(self, settings, backend):
        backend.fail_session = True
        async with create_http_client(settings, transport=backend.transport()) as http:
            api = AuthApiClient(http, settings)
            with pytest.raises(FetchError) as exc_info:
                await api.fetch_session()
        assert exc_info.value.status_code == 500
        assert exc_info.value.path == "session"

    @pytest.mark.asyncio
    async def test_csrf_and_providers(self, settings, backend):
        async with create_http_client(settings, transport=backend.transport()) as http:
            api = AuthApiClient(http, settings)
            assert await api.fetch_csrf_token() == "csrf-123"
            providers = await api.fetch_providers()
        assert set(providers) == {"github", "credentials"}
        assert providers["credentials"].type is ProviderType.CREDENTIALS
        assert providers["credentials"].supports_return is True
        assert providers["github"].signin_url == "http://testserver/api/auth/signin/github"

    @pytest.mark.asyncio
    async def test_cookie_is_forwarded(self, settings):
        http = MagicMock(spec=httpx.AsyncClient)
        http.get = AsyncMock(return_value=json_response(200, {"user": {"name": "Ada"}}))
        api = AuthApiClient(http, settings)

        await api.fetch_session(cookie="session-token=abc")

        assert http.get.await_args.kwargs["headers"] == {"cookie": "session-token=abc"}

    @pytest.mark.asyncio
    async def test_invalid_json_raises_fetch_error(self, settings):
        http = MagicMock(spec=httpx.AsyncClient)
        http.get = AsyncMock(
            return_value=httpx.Response(
                200, text="<html>", request=httpx.Request("GET", "http://testserver/")
            )
        )
        api = AuthApiClient(http, settings)
        with pytest.raises(FetchError, match="invalid JSON"):
            await api.fetch_session()

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, settings):
        http = MagicMock(spec=httpx.AsyncClient)
        http.get = AsyncMock(
            side_effect=[httpx.ConnectError("refused"), json_response(200, {"user": {}})]
        )
        api = AuthApiClient(http, settings)

        assert await api.fetch_session() == {"user": {}}
        assert http.get.await_count == 2

    @pytest.mark.asyncio
    async def test_transport_failure_surfaces_after_retries(self, settings):
        http = MagicMock(spec=httpx.AsyncClient)
        http.get = AsyncMock(side_effect=httpx.ConnectTimeout("slow"))
        api = AuthApiClient(http, settings)

        with pytest.raises(FetchError) as exc_info:
            await api.fetch_session()
        assert exc_info.value.path == "session"
        assert http.get.await_count == settings.MAX_RETRIES

    @pytest.mark.asyncio
    async def test_sign_out_posts_form(self, settings, backend):
        async with create_http_client(settings, transport=backend.transport()) as http:
            api = AuthApiClient(http, settings)
            result = await api.post_sign_out(
                {"csrfToken": "csrf-123", "callbackUrl": "http://app/", "json": True}
            )
        assert result.url == "http://app/"
        assert result.ok is True
        assert backend.forms[-1] == (
            "signout",
            {"csrfToken": "csrf-123", "callbackUrl": "http://app/", "json": "true"},
        )

    @pytest.mark.asyncio
    async def test_sign_in_routes_by_provider_type(self, settings, backend):
        async with create_http_client(settings, transport=backend.transport()) as http:
            api = AuthApiClient(http, settings)
            providers = await api.fetch_providers()
            oauth = await api.post_sign_in(providers["github"], {"csrfToken": "t"})
            creds = await api.post_sign_in(
                providers["credentials"], {"csrfToken": "t", "password": "wrong"}
            )
        assert oauth.ok is True
        assert oauth.url.startswith("https://idp.example/authorize")
        assert creds.ok is False
        assert creds.status == 401
        assert [name for name, _ in backend.forms] == ["signin/github", "callback/credentials"]

    def test_helper_urls(self, settings):
        api = AuthApiClient(MagicMock(spec=httpx.AsyncClient), settings)
        assert api.error_page_url() == "http://testserver/api/auth/error"
        assert (
            api.sign_in_page_url("http://app/next")
            == "http://testserver/api/auth/signin?callbackUrl=http%3A%2F%2Fapp%2Fnext"
        )

    @pytest.mark.asyncio
    async def test_malformed_provider_raises_fetch_error(self, settings):
        http = MagicMock(spec=httpx.AsyncClient)
        http.get = AsyncMock(
            return_value=json_response(
                200, {"github": {"name": "GitHub"}}, url="http://testserver/api/auth/providers"
            )
        )
        api = AuthApiClient(http, settings)

        with pytest.raises(FetchError) as exc_info:
            await api.fetch_providers()
        assert exc_info.value.path == "providers"


class TestHttpClient:
    def test_default_transport_does_not_retry(self, settings):
        with patch("authsync.clients.http_client.httpx.AsyncHTTPTransport") as transport_cls:
            client = create_http_client(settings)
        assert transport_cls.call_args_list[0].kwargs == {"verify": settings.VERIFY_SSL}
        assert client.follow_redirects is False

    @pytest.mark.asyncio
    async def test_one_attempt_per_retry_against_a_dead_host(self, settings):
        attempts = []

        def refuse(request: httpx.Request) -> httpx.Response:
            attempts.append(request.url.path)
            raise httpx.ConnectError("refused", request=request)

        async with create_http_client(settings, transport=httpx.MockTransport(refuse)) as http:
            api = AuthApiClient(http, settings)
            with pytest.raises(FetchError):
                await api.fetch_session()

        assert attempts == ["/api/auth/session"] * settings.MAX_RETRIES
