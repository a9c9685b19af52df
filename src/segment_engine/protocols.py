"""Runtime-checkable protocols for the collaborators the segment service consumes."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from src.shared.models.segments import (
    Actor,
    ClientSegment,
    FeatureStrategy,
    Segment,
    SegmentEvent,
    SegmentInput,
)


@runtime_checkable
class SegmentStore(Protocol):
    """Persistence for segments and their strategy links."""

    def get(self, segment_id: int) -> Segment:
        """Return the segment, raising ``NotFoundError`` if absent."""
        ...

    def get_all(self) -> list[Segment]:
        ...

    def get_active(self) -> list[Segment]:
        """Return segments currently linked to at least one strategy."""
        ...

    def get_active_for_client(self) -> list[ClientSegment]:
        ...

    def get_by_strategy(self, strategy_id: str) -> list[Segment]:
        ...

    def exists_by_name(self, name: str) -> bool:
        ...

    def create(self, segment: SegmentInput, actor: Actor) -> Segment:
        """Persist a new segment and return it with its assigned id."""
        ...

    def update(self, segment_id: int, segment: SegmentInput) -> Segment:
        ...

    def delete(self, segment_id: int) -> None:
        """Delete the segment together with all of its strategy links."""
        ...

    def add_to_strategy(self, segment_id: int, strategy_id: str) -> None:
        """Link a segment to a strategy. Adding an existing link is a no-op."""
        ...

    def remove_from_strategy(self, segment_id: int, strategy_id: str) -> None:
        """Unlink a segment from a strategy. Removing a missing link is a no-op."""
        ...


@runtime_checkable
class StrategyLookup(Protocol):
    """Read access to strategies and their project assignment."""

    def get_strategies_by_segment(self, segment_id: int) -> list[FeatureStrategy]:
        ...


@runtime_checkable
class EventSink(Protocol):
    """Append-only audit trail."""

    def store(self, event: SegmentEvent) -> None:
        ...
