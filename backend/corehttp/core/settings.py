from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COREHTTP_",
        case_sensitive=False,
    )

    title: str = "Chain Core API"

    # Logging
    log_level: str = "INFO"

    # Request IDs are read from (and echoed on) this header.
    request_id_header: str = "X-Request-ID"

    # Paths answered by a fixed "still needs to be configured" error.
    # Env form is JSON, e.g. COREHTTP_DISABLED_PATHS='["/create-account"]'.
    disabled_paths: list[str] = []


@lru_cache
def get_settings() -> Settings:
    return Settings()
