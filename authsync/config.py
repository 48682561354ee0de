from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Auth API location
    AUTH_URL: str = ""
    AUTH_URL_INTERNAL: str = ""
    VERCEL_URL: str = ""

    # HTTP
    REQUEST_TIMEOUT: int = 30
    MAX_RETRIES: int = 3
    BACKOFF_FACTOR: float = 0.5
    VERIFY_SSL: bool = True

    # Cross-context broadcast
    BROADCAST_KEY: str = "authsync.message"

    # Logging
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
