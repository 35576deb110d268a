"""Dispatch pipeline configuration.

Controls lookback windows, trial length, briefing size and background
task draining. All settings can be overridden via ``DISPATCH_*``
environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DispatchConfig(BaseSettings):
    """Configuration for dispatching briefings."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        case_sensitive=False,
        extra="ignore",
    )

    scheduled_lookback_days: int = Field(
        default=1,
        ge=1,
        le=30,
        description="Aggregation window for scheduled runs",
    )
    forced_lookback_days: int = Field(
        default=3,
        ge=1,
        le=30,
        description="Aggregation window for forced (manual) runs",
    )

    trial_length_days: int = Field(
        default=14,
        ge=1,
        le=90,
        description="Trial duration counted from subscriber creation",
    )

    briefing_item_limit: int = Field(
        default=25,
        ge=1,
        le=200,
        description="Newest items handed to the synthesizer",
    )
    top_stories: int = Field(
        default=8,
        ge=1,
        le=50,
        description="Items kept as linked top stories in a briefing",
    )
    sectioned_briefing: bool = Field(
        default=False,
        description="Group the headline digest by source type",
    )

    drain_timeout_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Grace period for in-flight dispatches on shutdown",
    )
