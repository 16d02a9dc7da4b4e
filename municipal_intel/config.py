"""Application settings loaded from environment."""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for municipal data access.

    The Socrata app token is read from ``SOCRATA_APP_TOKEN``; every other
    field uses the ``MUNICIPAL_INTEL_`` prefix (e.g.
    ``MUNICIPAL_INTEL_MAX_RETRIES``).
    """

    socrata_app_token: Optional[str] = Field(None, validation_alias="SOCRATA_APP_TOKEN")

    request_timeout: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 1.0

    # Rate limiting
    rate_limit_window: float = 3600.0
    requests_per_window_with_token: int = 1000
    requests_per_window_without_token: int = 100

    user_agent: str = "municipal-intel/0.1.0"
    project_url_base: Optional[str] = "https://municipal-intel.lineai.com/projects"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MUNICIPAL_INTEL_",
        populate_by_name=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Uses ``lru_cache`` so the .env file is read at most once per process.
    """
    return Settings()
