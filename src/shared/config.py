"""Shared configuration management using pydantic-settings."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from src.shared.constants import (
    DEFAULT_SEGMENT_VALUES_LIMIT,
    DEFAULT_STRATEGY_SEGMENTS_LIMIT,
)


class SharedConfig(BaseSettings):
    """Base configuration shared across all services."""
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")
    database_path: str = Field(
        default="./data/segments.db", validation_alias="DATABASE_PATH"
    )

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


class SegmentEngineConfig(SharedConfig):
    """Configuration for the segment engine.

    Both limits are read by the service on every call, so assigning a new
    value on a live instance takes effect immediately.
    """
    segment_values_limit: int = Field(
        default=DEFAULT_SEGMENT_VALUES_LIMIT,
        gt=0,
        validation_alias="SEGMENT_VALUES_LIMIT",
    )
    strategy_segments_limit: int = Field(
        default=DEFAULT_STRATEGY_SEGMENTS_LIMIT,
        gt=0,
        validation_alias="STRATEGY_SEGMENTS_LIMIT",
    )
