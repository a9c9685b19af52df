"""Segment lifecycle and strategy association service."""
from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import pydantic

from src.segment_engine.protocols import EventSink, SegmentStore, StrategyLookup
from src.segment_engine.services.reconciliation import diff_segment_ids, run_batch
from src.segment_engine.services.segment_schema import validate_segment_input
from src.segment_engine.services.segment_validator import (
    validate_desired_segment_count,
    validate_name_not_empty,
    validate_segment_project,
    validate_segment_values_limit,
    validate_strategy_has_room,
)
from src.shared.config import SegmentEngineConfig
from src.shared.errors import DuplicateNameError, ValidationError
from src.shared.models.segments import (
    Actor,
    ClientSegment,
    EventType,
    FeatureStrategy,
    Segment,
    SegmentEvent,
    SegmentInput,
)

logger = logging.getLogger(__name__)


def _as_actor(actor: Actor | dict[str, Any] | None) -> Actor:
    if actor is None:
        return Actor()
    if isinstance(actor, Actor):
        return actor
    try:
        return Actor.model_validate(actor)
    except pydantic.ValidationError as exc:
        fields = ", ".join(str(error["loc"][0]) for error in exc.errors() if error["loc"])
        raise ValidationError(detail=f"Invalid actor: {fields or exc}") from exc


@dataclass
class _StrategyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SegmentService:
    """Validates, persists and audits segments and their strategy links.

    Store calls are blocking and run on worker threads. Limits are read
    from *config* on every call.

    ``get_by_strategy``, ``get_strategies``, ``add_to_strategy`` and
    ``remove_from_strategy`` are public extension points for callers that
    layer extra business rules on top; keep their signatures stable.
    """

    def __init__(
        self,
        segment_store: SegmentStore,
        strategy_lookup: StrategyLookup,
        event_sink: EventSink,
        config: SegmentEngineConfig,
    ) -> None:
        self._segment_store = segment_store
        self._strategy_lookup = strategy_lookup
        self._event_sink = event_sink
        self._config = config
        # Serialises check-then-insert per strategy. Locks belong to one event
        # loop, so they are kept per running loop and dropped once unused.
        self._strategy_locks: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, dict[str, _StrategyLock]
        ] = weakref.WeakKeyDictionary()

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    async def get(self, segment_id: int) -> Segment:
        return await asyncio.to_thread(self._segment_store.get, segment_id)

    async def get_all(self) -> list[Segment]:
        return await asyncio.to_thread(self._segment_store.get_all)

    async def get_active(self) -> list[Segment]:
        return await asyncio.to_thread(self._segment_store.get_active)

    async def get_active_for_client(self) -> list[ClientSegment]:
        return await asyncio.to_thread(self._segment_store.get_active_for_client)

    async def get_by_strategy(self, strategy_id: str) -> list[Segment]:
        return await asyncio.to_thread(self._segment_store.get_by_strategy, strategy_id)

    async def get_strategies(self, segment_id: int) -> list[FeatureStrategy]:
        return await asyncio.to_thread(
            self._strategy_lookup.get_strategies_by_segment, segment_id
        )

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def create(
        self,
        data: Any,
        actor: Actor | dict[str, Any] | None = None,
    ) -> Segment:
        """Validate and persist a new segment, then record ``segment-created``.

        Raises:
            ValidationError: Payload is not segment-shaped, or the actor
                is malformed.
            LimitExceededError: Too many constraint values.
            EmptyNameError: Name is empty.
            DuplicateNameError: Another segment has this name.
        """
        candidate = validate_segment_input(data)
        actor = _as_actor(actor)
        validate_segment_values_limit(candidate, self._config.segment_values_limit)
        await self.validate_name(candidate.name)

        segment = await asyncio.to_thread(self._segment_store.create, candidate, actor)

        await self._emit(EventType.SEGMENT_CREATED, actor, data=segment)
        logger.info("Segment created: id=%s name=%s by=%s", segment.id, segment.name, actor.label)
        return segment

    async def update(
        self,
        segment_id: int,
        data: Any,
        actor: Actor | dict[str, Any] | None = None,
    ) -> Segment:
        """Replace a segment's definition, then record ``segment-updated``.

        Name uniqueness is only re-checked when the name changes.

        Raises:
            ValidationError: Payload is not segment-shaped, or the actor
                is malformed.
            LimitExceededError: Too many constraint values.
            NotFoundError: No segment with *segment_id*.
            EmptyNameError: New name is empty.
            DuplicateNameError: Another segment has the new name.
            InvalidProjectError: The new project conflicts with the
                strategies currently using the segment.
        """
        candidate = validate_segment_input(data)
        actor = _as_actor(actor)
        validate_segment_values_limit(candidate, self._config.segment_values_limit)
        pre_data = await self.get(segment_id)

        if pre_data.name != candidate.name:
            await self.validate_name(candidate.name)

        await self._validate_segment_project(segment_id, candidate)

        segment = await asyncio.to_thread(
            self._segment_store.update, segment_id, candidate
        )

        await self._emit(EventType.SEGMENT_UPDATED, actor, data=segment, pre_data=pre_data)
        logger.info("Segment updated: id=%s name=%s by=%s", segment.id, segment.name, actor.label)
        return segment

    async def delete(
        self,
        segment_id: int,
        actor: Actor | dict[str, Any] | None = None,
    ) -> None:
        """Delete a segment and its strategy links, then record ``segment-deleted``."""
        actor = _as_actor(actor)
        segment = await self.get(segment_id)
        await asyncio.to_thread(self._segment_store.delete, segment_id)
        await self._emit(EventType.SEGMENT_DELETED, actor, data=segment)
        logger.info("Segment deleted: id=%s name=%s by=%s", segment.id, segment.name, actor.label)

    async def validate_name(self, name: str) -> None:
        """Check that *name* is non-empty and not held by any segment.

        Safe to call on its own for early feedback; it never mutates.
        """
        validate_name_not_empty(name)
        if await asyncio.to_thread(self._segment_store.exists_by_name, name):
            raise DuplicateNameError()

    # ------------------------------------------------------------------
    # strategy association
    # ------------------------------------------------------------------

    async def add_to_strategy(self, segment_id: int, strategy_id: str) -> None:
        """Link a segment to a strategy, enforcing the per-strategy limit.

        Linking an already-linked pair is a no-op and never counts twice.
        Project scoping is not checked here.

        Raises:
            LimitExceededError: The strategy already has the maximum
                number of segments.
        """
        async with self._strategy_lock(strategy_id):
            current = await self.get_by_strategy(strategy_id)
            if any(segment.id == segment_id for segment in current):
                return
            validate_strategy_has_room(len(current), self._config.strategy_segments_limit)
            await asyncio.to_thread(
                self._segment_store.add_to_strategy, segment_id, strategy_id
            )

    async def remove_from_strategy(self, segment_id: int, strategy_id: str) -> None:
        """Unlink a segment from a strategy. Missing links are ignored."""
        await asyncio.to_thread(
            self._segment_store.remove_from_strategy, segment_id, strategy_id
        )

    async def update_strategy_segments(
        self,
        strategy_id: str,
        segment_ids: list[int],
    ) -> None:
        """Make the strategy's linked segments exactly *segment_ids*.

        All removals finish before any addition starts, so swapping
        segments at the limit does not trip the count check. A failure
        leaves already-applied changes in place and re-raises the first
        error.

        Raises:
            LimitExceededError: *segment_ids* is larger than the limit, or
                an addition found the strategy full.
        """
        validate_desired_segment_count(
            len(segment_ids), self._config.strategy_segments_limit
        )

        current = await self.get_by_strategy(strategy_id)
        diff = diff_segment_ids((segment.id for segment in current), segment_ids)
        if diff.is_empty:
            return

        removed = await run_batch(
            f"remove segments from strategy {strategy_id}",
            diff.to_remove,
            [self.remove_from_strategy(sid, strategy_id) for sid in diff.to_remove],
        )
        removed.raise_first_error()

        added = await run_batch(
            f"add segments to strategy {strategy_id}",
            diff.to_add,
            [self.add_to_strategy(sid, strategy_id) for sid in diff.to_add],
        )
        added.raise_first_error()

        logger.info(
            "Strategy segments reconciled: strategy=%s removed=%s added=%s",
            strategy_id, diff.to_remove, diff.to_add,
        )

    async def clone_strategy_segments(
        self,
        source_strategy_id: str,
        target_strategy_id: str,
    ) -> None:
        """Link every segment of the source strategy to the target strategy.

        Each link is limit-checked on its own; links that fit are kept even
        when others fail, and the first error is re-raised.
        """
        source_segments = await self.get_by_strategy(source_strategy_id)
        segment_ids = [segment.id for segment in source_segments]

        outcome = await run_batch(
            f"clone segments {source_strategy_id} -> {target_strategy_id}",
            segment_ids,
            [self.add_to_strategy(sid, target_strategy_id) for sid in segment_ids],
        )
        outcome.raise_first_error()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _strategy_lock(self, strategy_id: str) -> AsyncIterator[None]:
        locks = self._strategy_locks.setdefault(asyncio.get_running_loop(), {})
        entry = locks.get(strategy_id)
        if entry is None:
            entry = locks[strategy_id] = _StrategyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del locks[strategy_id]

    async def _validate_segment_project(
        self,
        segment_id: int,
        candidate: SegmentInput,
    ) -> None:
        if not candidate.project:
            return
        strategies = await self.get_strategies(segment_id)
        validate_segment_project(candidate.project, strategies)

    async def _emit(
        self,
        event_type: EventType,
        actor: Actor,
        data: Segment,
        pre_data: Segment | None = None,
    ) -> None:
        event = SegmentEvent(
            type=event_type,
            created_by=actor.label,
            data=data.model_dump(mode="json"),
            pre_data=pre_data.model_dump(mode="json") if pre_data is not None else None,
        )
        await asyncio.to_thread(self._event_sink.store, event)
