from __future__ import annotations

import re
from typing import NamedTuple

DEFAULT_HOST = "http://localhost:3000"
DEFAULT_PATH = "/api/auth"

_SCHEME_RE = re.compile(r"^https?://")


class ParsedUrl(NamedTuple):
    base_url: str
    base_path: str

    @property
    def api_url(self) -> str:
        return f"{self.base_url}{self.base_path}"


def parse_url(url: str | None) -> ParsedUrl:
    """Split an auth URL into origin and path, filling in local defaults.

    A bare host (``example.com``) is treated as https and gets the default
    ``/api/auth`` path. A missing URL yields ``http://localhost:3000/api/auth``.
    """
    if not url:
        url = f"{DEFAULT_HOST}{DEFAULT_PATH}"

    protocol = "http" if url.startswith("http:") else "https"
    stripped = _SCHEME_RE.sub("", url).rstrip("/")
    host, _, path = stripped.partition("/")

    base_url = f"{protocol}://{host}" if host else DEFAULT_HOST
    base_path = f"/{path}" if path else DEFAULT_PATH
    return ParsedUrl(base_url=base_url, base_path=base_path)
