"""Tests for SegmentService create/update/delete and auditing."""
from __future__ import annotations

import pytest

from src.shared.errors import (
    DuplicateNameError,
    EmptyNameError,
    InvalidProjectError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from src.shared.models.segments import Actor, EventType
from tests.conftest import make_payload


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_assigns_id_and_audits(self, service, event_store, actor, payload):
        segment = await service.create(payload, actor)

        assert segment.id == 1
        assert segment.name == "eu-users"
        assert segment.created_by == "jane@example.com"
        assert len(event_store.events) == 1
        event = event_store.events[0]
        assert event.type == EventType.SEGMENT_CREATED
        assert event.created_by == "jane@example.com"
        assert event.data["id"] == segment.id
        assert event.pre_data is None

    @pytest.mark.asyncio
    async def test_create_accepts_plain_actor_dict(self, service, event_store, payload):
        await service.create(payload, {"username": "bob"})
        assert event_store.events[0].created_by == "bob"

    @pytest.mark.asyncio
    async def test_malformed_input_rejected_before_anything(self, service, segment_store, event_store):
        with pytest.raises(ValidationError):
            await service.create({"name": "beta"}, Actor())
        assert segment_store.get_all() == []
        assert event_store.events == []

    @pytest.mark.asyncio
    async def test_values_limit_rejected_without_write(self, service, segment_store, event_store, config):
        values = [str(i) for i in range(config.segment_values_limit + 1)]
        with pytest.raises(LimitExceededError) as exc_info:
            await service.create(make_payload(values=values), Actor())
        assert "10 values" in exc_info.value.detail
        assert segment_store.get_all() == []
        assert event_store.events == []

    @pytest.mark.asyncio
    async def test_limit_read_at_call_time(self, service, config):
        await service.create(make_payload(name="a", values=["1", "2"]), Actor())
        config.segment_values_limit = 1
        with pytest.raises(LimitExceededError):
            await service.create(make_payload(name="b", values=["1", "2"]), Actor())

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, service):
        with pytest.raises(EmptyNameError):
            await service.create(make_payload(name=""), Actor())

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, service, segment_store, actor):
        await service.create(make_payload(name="beta"), actor)
        with pytest.raises(DuplicateNameError):
            await service.create(make_payload(name="beta"), actor)
        assert len(segment_store.get_all()) == 1

    @pytest.mark.asyncio
    async def test_names_are_case_sensitive(self, service, actor):
        await service.create(make_payload(name="beta"), actor)
        other = await service.create(make_payload(name="Beta"), actor)
        assert other.name == "Beta"


class TestValidateName:
    @pytest.mark.asyncio
    async def test_free_name_passes(self, service):
        await service.validate_name("unused")

    @pytest.mark.asyncio
    async def test_taken_name_rejected(self, service, actor, payload):
        await service.create(payload, actor)
        with pytest.raises(DuplicateNameError):
            await service.validate_name("eu-users")


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_replaces_fields_and_audits(self, service, event_store, actor, payload):
        created = await service.create(payload, actor)
        updated = await service.update(
            created.id,
            make_payload(description="Changed", values=["it"]),
            actor,
        )

        assert updated.id == created.id
        assert updated.description == "Changed"
        assert updated.constraints[0].values == ["it"]
        event = event_store.events[-1]
        assert event.type == EventType.SEGMENT_UPDATED
        assert event.pre_data["description"] == "Users in the EU"
        assert event.data["description"] == "Changed"

    @pytest.mark.asyncio
    async def test_unchanged_name_skips_uniqueness(self, service, actor, payload):
        created = await service.create(payload, actor)
        updated = await service.update(created.id, payload, actor)
        assert updated.name == "eu-users"

    @pytest.mark.asyncio
    async def test_rename_to_taken_name_rejected(self, service, actor):
        await service.create(make_payload(name="alpha"), actor)
        beta = await service.create(make_payload(name="beta"), actor)
        with pytest.raises(DuplicateNameError):
            await service.update(beta.id, make_payload(name="alpha"), actor)

    @pytest.mark.asyncio
    async def test_rename_to_empty_rejected(self, service, actor, payload):
        created = await service.create(payload, actor)
        with pytest.raises(EmptyNameError):
            await service.update(created.id, make_payload(name=""), actor)

    @pytest.mark.asyncio
    async def test_missing_segment(self, service, event_store, payload):
        with pytest.raises(NotFoundError):
            await service.update(99, payload, Actor())
        assert event_store.events == []

    @pytest.mark.asyncio
    async def test_values_limit_checked_before_lookup(self, service, config):
        values = [str(i) for i in range(config.segment_values_limit + 1)]
        with pytest.raises(LimitExceededError):
            await service.update(99, make_payload(values=values), Actor())

    @pytest.mark.asyncio
    async def test_same_project_noop_allowed(self, service, actor):
        segment = await service.create(make_payload(project="default"), actor)
        await service.add_to_strategy(segment.id, "strat-1")
        updated = await service.update(segment.id, make_payload(project="default"), actor)
        assert updated.project == "default"

    @pytest.mark.asyncio
    async def test_rescope_to_other_project_rejected(self, service, event_store, actor):
        segment = await service.create(make_payload(project="default"), actor)
        await service.add_to_strategy(segment.id, "strat-1")
        with pytest.raises(InvalidProjectError):
            await service.update(segment.id, make_payload(project="checkout"), actor)
        assert (await service.get(segment.id)).project == "default"
        assert [e.type for e in event_store.events] == [EventType.SEGMENT_CREATED]

    @pytest.mark.asyncio
    async def test_narrow_unscoped_segment_to_its_only_project(self, service, actor, payload):
        segment = await service.create(payload, actor)
        await service.add_to_strategy(segment.id, "strat-3")
        await service.add_to_strategy(segment.id, "strat-4")
        updated = await service.update(segment.id, make_payload(project="checkout"), actor)
        assert updated.project == "checkout"

    @pytest.mark.asyncio
    async def test_cannot_scope_segment_spanning_projects(self, service, actor, payload):
        segment = await service.create(payload, actor)
        await service.add_to_strategy(segment.id, "strat-1")
        await service.add_to_strategy(segment.id, "strat-3")
        with pytest.raises(InvalidProjectError) as exc_info:
            await service.update(segment.id, make_payload(project="default"), actor)
        assert "default, checkout" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_unscoping_always_allowed(self, service, actor):
        segment = await service.create(make_payload(project="default"), actor)
        await service.add_to_strategy(segment.id, "strat-1")
        await service.add_to_strategy(segment.id, "strat-3")
        updated = await service.update(segment.id, make_payload(), actor)
        assert updated.project is None


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_links_and_audits(self, service, event_store, actor, payload):
        segment = await service.create(payload, actor)
        await service.add_to_strategy(segment.id, "strat-1")

        await service.delete(segment.id, actor)

        with pytest.raises(NotFoundError):
            await service.get(segment.id)
        assert await service.get_by_strategy("strat-1") == []
        event = event_store.events[-1]
        assert event.type == EventType.SEGMENT_DELETED
        assert event.data["name"] == "eu-users"

    @pytest.mark.asyncio
    async def test_delete_missing(self, service, event_store):
        with pytest.raises(NotFoundError):
            await service.delete(42, Actor())
        assert event_store.events == []


class TestReads:
    @pytest.mark.asyncio
    async def test_get_all_and_active(self, service, actor):
        used = await service.create(make_payload(name="used"), actor)
        await service.create(make_payload(name="unused"), actor)
        await service.add_to_strategy(used.id, "strat-1")

        assert [s.name for s in await service.get_all()] == ["used", "unused"]
        assert [s.name for s in await service.get_active()] == ["used"]
        client = await service.get_active_for_client()
        assert [(c.id, c.name) for c in client] == [(used.id, "used")]
        assert client[0].constraints[0].values == ["de", "fr"]

    @pytest.mark.asyncio
    async def test_get_strategies(self, service, actor, payload):
        segment = await service.create(payload, actor)
        await service.add_to_strategy(segment.id, "strat-1")
        await service.add_to_strategy(segment.id, "strat-3")
        strategies = await service.get_strategies(segment.id)
        assert [(s.id, s.project_id) for s in strategies] == [
            ("strat-1", "default"),
            ("strat-3", "checkout"),
        ]


class TestActorValidation:
    @pytest.mark.asyncio
    async def test_malformed_actor_is_validation_error(self, service, segment_store, payload):
        with pytest.raises(ValidationError) as exc_info:
            await service.create(payload, {"email": 5})
        assert "email" in exc_info.value.detail
        assert segment_store.get_all() == []

    @pytest.mark.asyncio
    async def test_payload_checked_before_actor(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.create({"name": "beta"}, {"email": 5})
        assert exc_info.value.detail.startswith("Invalid segment")

    @pytest.mark.asyncio
    async def test_malformed_actor_on_delete(self, service, actor, payload):
        segment = await service.create(payload, actor)
        with pytest.raises(ValidationError):
            await service.delete(segment.id, {"username": ["jane"]})
        assert (await service.get(segment.id)).id == segment.id
