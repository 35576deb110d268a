"""Feed fetching configuration.

Controls per-source timeouts, retry behaviour and parse limits for the
feed fetcher. All settings can be overridden via ``FEEDS_*`` environment
variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FetchConfig(BaseSettings):
    """Configuration for fetching and normalizing source feeds."""

    model_config = SettingsConfigDict(
        env_prefix="FEEDS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Hard bound on one source, including retries and autodiscovery
    timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="Wall-clock budget for fetching one source",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout for a single HTTP request",
    )

    # Retry behaviour for transient upstream errors (429, 5xx, connect)
    max_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Retries after the first attempt for retryable failures",
    )
    retry_base_delay: float = Field(
        default=0.5,
        ge=0.0,
        description="Base delay in seconds for exponential backoff",
    )

    max_items_per_source: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Entries kept from one feed document",
    )
    max_description_chars: int = Field(
        default=2000,
        ge=100,
        description="Cleaned description length cap",
    )
    follow_autodiscovery: bool = Field(
        default=True,
        description="Follow <link rel=alternate> when a source serves HTML",
    )
