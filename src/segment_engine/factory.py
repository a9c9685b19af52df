"""Wiring helpers that assemble a :class:`SegmentService` from its stores."""
from __future__ import annotations

from src.segment_engine.services.segment_service import SegmentService
from src.segment_engine.storage.event_store import EventStore
from src.segment_engine.storage.fakes import (
    FakeEventStore,
    FakeFeatureStrategiesStore,
    FakeSegmentStore,
)
from src.segment_engine.storage.feature_strategies_store import FeatureStrategiesStore
from src.segment_engine.storage.segment_store import SegmentStore
from src.shared.config import SegmentEngineConfig
from src.shared.db.connection import ConnectionPool
from src.shared.db.schema import init_segments_db
from src.shared.logging import setup_logging


def create_segment_service(
    pool: ConnectionPool,
    config: SegmentEngineConfig | None = None,
) -> SegmentService:
    """Build a service over SQLite stores, creating the schema if needed.

    Also installs JSON logging at the configured level.
    """
    config = config or SegmentEngineConfig()
    setup_logging(level=config.log_level)
    init_segments_db(pool)
    return SegmentService(
        segment_store=SegmentStore(pool),
        strategy_lookup=FeatureStrategiesStore(pool),
        event_sink=EventStore(pool),
        config=config,
    )


def create_fake_segment_service(
    config: SegmentEngineConfig | None = None,
) -> SegmentService:
    """Build a service over in-memory stores."""
    segment_store = FakeSegmentStore()
    return SegmentService(
        segment_store=segment_store,
        strategy_lookup=FakeFeatureStrategiesStore(segment_store),
        event_sink=FakeEventStore(),
        config=config or SegmentEngineConfig(),
    )
