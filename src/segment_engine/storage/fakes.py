"""In-memory implementations of the segment engine stores.

They honour the same contracts as the SQLite stores and are safe to call
from the worker threads the service dispatches onto.
"""
from __future__ import annotations

import itertools
import threading
from datetime import datetime, timezone

from src.shared.errors import NotFoundError
from src.shared.models.segments import (
    Actor,
    ClientSegment,
    EventType,
    FeatureStrategy,
    Segment,
    SegmentEvent,
    SegmentInput,
)


def _input_fields(segment: SegmentInput) -> dict:
    return segment.model_dump(include=set(SegmentInput.model_fields))


class FakeSegmentStore:
    """Dictionary-backed segment store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._segments: dict[int, Segment] = {}
        # (strategy_id, segment_id) pairs in insertion order
        self._links: dict[tuple[str, int], None] = {}

    def get(self, segment_id: int) -> Segment:
        with self._lock:
            segment = self._segments.get(segment_id)
        if segment is None:
            raise NotFoundError(detail=f"Segment not found: {segment_id}")
        return segment.model_copy(deep=True)

    def get_all(self) -> list[Segment]:
        with self._lock:
            return [s.model_copy(deep=True) for _, s in sorted(self._segments.items())]

    def get_active(self) -> list[Segment]:
        with self._lock:
            active = {segment_id for _, segment_id in self._links}
            return [
                s.model_copy(deep=True)
                for sid, s in sorted(self._segments.items())
                if sid in active
            ]

    def get_active_for_client(self) -> list[ClientSegment]:
        return [
            ClientSegment(id=s.id, name=s.name, constraints=s.constraints)
            for s in self.get_active()
        ]

    def get_by_strategy(self, strategy_id: str) -> list[Segment]:
        with self._lock:
            return [
                self._segments[segment_id].model_copy(deep=True)
                for sid, segment_id in self._links
                if sid == strategy_id and segment_id in self._segments
            ]

    def exists_by_name(self, name: str) -> bool:
        with self._lock:
            return any(s.name == name for s in self._segments.values())

    def create(self, segment: SegmentInput, actor: Actor) -> Segment:
        with self._lock:
            segment_id = next(self._ids)
            created = Segment(
                id=segment_id,
                created_by=actor.label,
                created_at=datetime.now(timezone.utc),
                **_input_fields(segment),
            )
            self._segments[segment_id] = created
        return created.model_copy(deep=True)

    def update(self, segment_id: int, segment: SegmentInput) -> Segment:
        with self._lock:
            existing = self._segments.get(segment_id)
            if existing is None:
                raise NotFoundError(detail=f"Segment not found: {segment_id}")
            updated = Segment(
                id=existing.id,
                created_by=existing.created_by,
                created_at=existing.created_at,
                **_input_fields(segment),
            )
            self._segments[segment_id] = updated
        return updated.model_copy(deep=True)

    def delete(self, segment_id: int) -> None:
        with self._lock:
            self._segments.pop(segment_id, None)
            for key in [key for key in self._links if key[1] == segment_id]:
                del self._links[key]

    def add_to_strategy(self, segment_id: int, strategy_id: str) -> None:
        with self._lock:
            self._links.setdefault((strategy_id, segment_id), None)

    def remove_from_strategy(self, segment_id: int, strategy_id: str) -> None:
        with self._lock:
            self._links.pop((strategy_id, segment_id), None)

    def link_count(self, strategy_id: str) -> int:
        with self._lock:
            return sum(1 for sid, _ in self._links if sid == strategy_id)

    def strategies_for(self, segment_id: int) -> list[str]:
        with self._lock:
            return [sid for sid, seg in self._links if seg == segment_id]


class FakeFeatureStrategiesStore:
    """Strategy lookup that reads links from a :class:`FakeSegmentStore`."""

    def __init__(self, segment_store: FakeSegmentStore) -> None:
        self._lock = threading.Lock()
        self._segment_store = segment_store
        self._strategies: dict[str, FeatureStrategy] = {}

    def create(self, strategy: FeatureStrategy) -> FeatureStrategy:
        with self._lock:
            self._strategies[strategy.id] = strategy
        return strategy

    def get_strategies_by_segment(self, segment_id: int) -> list[FeatureStrategy]:
        strategy_ids = self._segment_store.strategies_for(segment_id)
        with self._lock:
            return [
                self._strategies[sid] for sid in strategy_ids if sid in self._strategies
            ]


class FakeEventStore:
    """List-backed audit sink."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[SegmentEvent] = []

    def store(self, event: SegmentEvent) -> None:
        with self._lock:
            self.events.append(event)

    def get_events(self, type: EventType | None = None) -> list[SegmentEvent]:
        with self._lock:
            return [e for e in self.events if type is None or e.type == type]
