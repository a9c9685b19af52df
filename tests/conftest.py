"""Shared test fixtures for the segment engine test suite."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Generator

import pytest

from src.segment_engine.services.segment_service import SegmentService
from src.segment_engine.storage.fakes import (
    FakeEventStore,
    FakeFeatureStrategiesStore,
    FakeSegmentStore,
)
from src.shared.config import SegmentEngineConfig
from src.shared.db.connection import ConnectionPool
from src.shared.db.schema import init_segments_db
from src.shared.models.segments import Actor, FeatureStrategy


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def connection_pool(tmp_db_path: Path) -> Generator[ConnectionPool, None, None]:
    """Provide a ConnectionPool with an initialised segments schema."""
    pool = ConnectionPool(tmp_db_path)
    init_segments_db(pool)
    yield pool
    pool.close()


@pytest.fixture
def config(monkeypatch: pytest.MonkeyPatch) -> SegmentEngineConfig:
    """Config with small limits, isolated from the environment."""
    monkeypatch.delenv("SEGMENT_VALUES_LIMIT", raising=False)
    monkeypatch.delenv("STRATEGY_SEGMENTS_LIMIT", raising=False)
    return SegmentEngineConfig(segment_values_limit=10, strategy_segments_limit=3)


@pytest.fixture
def segment_store() -> FakeSegmentStore:
    return FakeSegmentStore()


@pytest.fixture
def strategies_store(segment_store: FakeSegmentStore) -> FakeFeatureStrategiesStore:
    """Fake strategy lookup seeded with strategies across two projects."""
    store = FakeFeatureStrategiesStore(segment_store)
    for strategy_id, project_id in [
        ("strat-1", "default"),
        ("strat-2", "default"),
        ("strat-3", "checkout"),
        ("strat-4", "checkout"),
    ]:
        store.create(
            FeatureStrategy(
                id=strategy_id,
                feature_name=f"feature-{strategy_id}",
                project_id=project_id,
            )
        )
    return store


@pytest.fixture
def event_store() -> FakeEventStore:
    return FakeEventStore()


@pytest.fixture
def service(
    segment_store: FakeSegmentStore,
    strategies_store: FakeFeatureStrategiesStore,
    event_store: FakeEventStore,
    config: SegmentEngineConfig,
) -> SegmentService:
    """SegmentService over in-memory stores."""
    return SegmentService(
        segment_store=segment_store,
        strategy_lookup=strategies_store,
        event_sink=event_store,
        config=config,
    )


@pytest.fixture
def actor() -> Actor:
    return Actor(username="jane", email="jane@example.com")


def make_payload(
    name: str = "eu-users",
    values: list[str] | None = None,
    project: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a raw segment payload with one constraint."""
    payload: dict[str, Any] = {
        "name": name,
        "description": "Users in the EU",
        "constraints": [
            {
                "contextName": "country",
                "operator": "IN",
                "values": ["de", "fr"] if values is None else values,
            }
        ],
    }
    if project is not None:
        payload["project"] = project
    payload.update(extra)
    return payload


@pytest.fixture
def payload() -> dict[str, Any]:
    return make_payload()
