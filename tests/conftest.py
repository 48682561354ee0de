from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any
from urllib.parse import parse_qsl

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from authsync.config import Settings

API_URL = "http://testserver/api/auth"

SIGNED_IN = {"user": {"name": "Ada", "email": "ada@example.com"}, "expires": "2099-01-01T00:00:00Z"}


class FakeClock:
    def __init__(self, start: int = 1000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeAuthBackend:
    """In-process stand-in for the auth API, served over httpx.ASGITransport."""

    def __init__(self) -> None:
        self.session: dict[str, Any] | None = dict(SIGNED_IN)
        self.calls: Counter[str] = Counter()
        self.forms: list[tuple[str, dict[str, str]]] = []
        self.fail_session = False
        self.session_gate: asyncio.Event | None = None
        self.providers: dict[str, Any] = {
            "github": {
                "id": "github",
                "name": "GitHub",
                "type": "oauth",
                "signinUrl": f"{API_URL}/signin/github",
                "callbackUrl": f"{API_URL}/callback/github",
            },
            "credentials": {
                "id": "credentials",
                "name": "Password",
                "type": "credentials",
                "signinUrl": f"{API_URL}/signin/credentials",
                "callbackUrl": f"{API_URL}/callback/credentials",
            },
        }
        self.app = self._build_app()

    def transport(self) -> httpx.ASGITransport:
        return httpx.ASGITransport(app=self.app)

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.get("/api/auth/session")
        async def session() -> JSONResponse:
            self.calls["session"] += 1
            if self.session_gate is not None:
                await self.session_gate.wait()
            if self.fail_session:
                return JSONResponse(status_code=500, content={"message": "boom"})
            return JSONResponse(content=self.session or {})

        @app.get("/api/auth/csrf")
        async def csrf() -> dict[str, str]:
            self.calls["csrf"] += 1
            return {"csrfToken": "csrf-123"}

        @app.get("/api/auth/providers")
        async def providers() -> JSONResponse:
            self.calls["providers"] += 1
            return JSONResponse(content=self.providers)

        @app.post("/api/auth/signin/{provider}")
        async def signin(provider: str, request: Request) -> dict[str, str]:
            form = await self._record(f"signin/{provider}", request)
            return {"url": f"https://idp.example/authorize?state={form.get('csrfToken')}"}

        @app.post("/api/auth/callback/{provider}")
        async def callback(provider: str, request: Request) -> JSONResponse:
            form = await self._record(f"callback/{provider}", request)
            if form.get("password") == "secret":
                self.session = dict(SIGNED_IN)
                return JSONResponse(content={"url": form.get("callbackUrl", "http://testserver/")})
            return JSONResponse(
                status_code=401,
                content={"url": f"{API_URL}/error?error=CredentialsSignin"},
            )

        @app.post("/api/auth/signout")
        async def signout(request: Request) -> dict[str, str]:
            form = await self._record("signout", request)
            self.session = None
            return {"url": form.get("callbackUrl", "http://testserver/")}

        return app

    async def _record(self, name: str, request: Request) -> dict[str, str]:
        self.calls[name] += 1
        form = dict(parse_qsl((await request.body()).decode()))
        self.forms.append((name, form))
        return form


@pytest.fixture
def settings() -> Settings:
    return Settings(
        AUTH_URL=API_URL,
        MAX_RETRIES=2,
        BACKOFF_FACTOR=0,
        REQUEST_TIMEOUT=5,
    )


@pytest.fixture
def backend() -> FakeAuthBackend:
    return FakeAuthBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
