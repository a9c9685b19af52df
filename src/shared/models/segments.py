"""Segment engine Pydantic v2 data models."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.shared.constants import UNKNOWN_ACTOR


# Admin payloads arrive in camelCase; Python code uses field names.
_PAYLOAD_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    from_attributes=True,
    extra="ignore",
)


class EventType(str, Enum):
    """Audit event types emitted by segment mutations."""
    SEGMENT_CREATED = "segment-created"
    SEGMENT_UPDATED = "segment-updated"
    SEGMENT_DELETED = "segment-deleted"


class Constraint(BaseModel):
    """A single matching condition within a segment."""
    context_name: str = Field(..., min_length=1)
    operator: str = Field(..., min_length=1)
    values: list[str] | None = None
    value: str | None = None
    case_insensitive: bool = False
    inverted: bool = False

    model_config = _PAYLOAD_CONFIG


class SegmentInput(BaseModel):
    """Typed candidate segment produced by input validation."""
    name: str
    description: str | None = None
    example: str | None = None
    project: str | None = None
    constraints: list[Constraint]

    model_config = _PAYLOAD_CONFIG

    @field_validator("project", mode="before")
    @classmethod
    def empty_project_is_unscoped(cls, value: Any) -> Any:
        if value == "":
            return None
        return value


class Segment(SegmentInput):
    """A stored segment."""
    id: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    created_by: str | None = None


class ClientSegment(BaseModel):
    """Reduced segment projection for runtime evaluation consumers."""
    id: int
    name: str
    constraints: list[Constraint]

    model_config = {"from_attributes": True}


class FeatureStrategy(BaseModel):
    """A rollout strategy that may reference segments."""
    id: str
    feature_name: str
    project_id: str
    strategy_name: str = "default"

    model_config = {"from_attributes": True}


class Actor(BaseModel):
    """Identity attributed to a mutation for audit purposes."""
    username: str | None = None
    email: str | None = None

    @property
    def label(self) -> str:
        """Email if present, else username, else a placeholder."""
        return self.email or self.username or UNKNOWN_ACTOR


class SegmentEvent(BaseModel):
    """An audit event describing one segment mutation."""
    type: EventType
    created_by: str
    data: dict[str, Any]
    pre_data: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True}
