"""Discovery (source search) configuration.

Controls per-provider timeouts, result caps and bridge racing. All
settings can be overridden via ``DISCOVERY_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscoveryConfig(BaseSettings):
    """Configuration for multi-provider source discovery."""

    model_config = SettingsConfigDict(
        env_prefix="DISCOVERY_",
        case_sensitive=False,
        extra="ignore",
    )

    provider_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60,
        description="Wall-clock budget for one provider inside a search",
    )
    results_per_provider: int = Field(
        default=5,
        ge=1,
        le=25,
        description="Results kept from each provider",
    )

    # Feed directory (blog/newsletter search)
    directory_url: str = Field(
        default="https://cloud.feedly.com/v3/search/feeds",
        description="Feed directory search endpoint",
    )
    directory_request_count: int = Field(
        default=8,
        ge=1,
        le=50,
        description="Results requested from the feed directory before filtering",
    )
    directory_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for the feed directory request",
    )
    substack_lookup_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Timeout for the <query>.substack.com fallback lookup",
    )

    # Social handle search
    bridge_timeout_seconds: float = Field(
        default=4.0,
        gt=0,
        le=30,
        description="Budget for racing mirrored bridge endpoints",
    )
    profile_timeout_seconds: float = Field(
        default=6.0,
        gt=0,
        description="Timeout for the direct profile lookup",
    )
