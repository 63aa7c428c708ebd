"""Environment-driven settings for the relay server and poller."""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hookrelay.utilities import (
    DEFAULT_PORT,
    DRAIN_PAUSE_MS,
    IP_LOOKUP_URL,
    MAKER_TRIGGER_URL,
    MAX_BUFFER_SIZE,
    MAX_CLIENT_IDLE_MS,
    MAX_EVENT_AGE_MS,
    URL_SUFFIX,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HOOKRELAY_",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    # Server
    host: str = Field("0.0.0.0", description="Interface the relay listens on")
    port: int = Field(DEFAULT_PORT, ge=0, le=65535, description="Port the relay listens on")
    url_suffix: str = Field(URL_SUFFIX, description="Path of the single request endpoint")
    debug: bool = Field(False, description="Log every (caller, request, response) triple")

    # Broker
    max_size: int = Field(MAX_BUFFER_SIZE, ge=1, description="Events kept per identifier")
    max_event_age_ms: int = Field(MAX_EVENT_AGE_MS, ge=0)
    max_client_idle_ms: int = Field(MAX_CLIENT_IDLE_MS, ge=0)

    # Poller
    drain_pause_ms: int = Field(DRAIN_PAUSE_MS, ge=0, description="Pause between reads in one tick")
    client_timeout_seconds: float = Field(10.0, gt=0)

    # Outbound
    maker_key: Optional[str] = Field(default=None, description="Key for the maker webhook service")
    maker_trigger_url: str = MAKER_TRIGGER_URL
    ip_lookup_url: str = IP_LOOKUP_URL

    # Logging
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
