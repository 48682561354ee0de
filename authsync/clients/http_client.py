from __future__ import annotations

import httpx

from authsync.config import Settings


def create_http_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    # No transport retries: AuthApiClient retries GETs through utils/retry.py
    if transport is None:
        transport = httpx.AsyncHTTPTransport(verify=settings.VERIFY_SSL)
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(settings.REQUEST_TIMEOUT),
        headers={"Accept": "application/json"},
        follow_redirects=False,
    )


async def close_http_client(client: httpx.AsyncClient) -> None:
    await client.aclose()
