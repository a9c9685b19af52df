"""Shared constants used across the segment engine."""
from __future__ import annotations

# Application version
VERSION: str = "1.0.0"

# Service name
SEGMENT_ENGINE_SERVICE_NAME: str = "segment-engine"

# Database settings
DB_BUSY_TIMEOUT_MS: int = 30000

# Default business limits
DEFAULT_SEGMENT_VALUES_LIMIT: int = 1000
DEFAULT_STRATEGY_SEGMENTS_LIMIT: int = 5

# Fallback audit identity when the actor carries neither email nor username
UNKNOWN_ACTOR: str = "unknown"
