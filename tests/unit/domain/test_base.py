"""Unit tests for base domain models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from deployctl.domain.models.base import (
    AggregateRoot,
    DomainEntity,
    DomainEvent,
    generate_id,
    utc_now,
    ValueObject,
)


class TestGenerateId:
    def test_unique(self) -> None:
        ids = {generate_id() for _ in range(100)}
        assert len(ids) == 100


class TestUtcNow:
    def test_timezone_aware(self) -> None:
        assert utc_now().tzinfo is not None


class TestDomainEntity:
    def test_touch_refreshes_updated_at(self) -> None:
        entity = DomainEntity()
        before = entity.updated_at
        entity.touch()
        assert entity.updated_at >= before
        assert entity.created_at <= entity.updated_at


class TestValueObject:
    def test_frozen(self) -> None:
        class Ref(ValueObject):
            value: str

        ref = Ref(value="a")
        with pytest.raises(ValidationError):
            ref.value = "b"  # type: ignore[misc]


class TestDomainEvent:
    def test_write_once(self) -> None:
        event = DomainEvent(event_type="test.happened")
        with pytest.raises(ValidationError):
            event.event_type = "other"  # type: ignore[misc]


class TestAggregateRoot:
    def test_collect_clears(self) -> None:
        agg = AggregateRoot()
        agg.add_event(DomainEvent(event_type="a"))
        agg.add_event(DomainEvent(event_type="b"))
        assert len(agg.pending_events) == 2
        events = agg.collect_events()
        assert [e.event_type for e in events] == ["a", "b"]
        assert agg.collect_events() == []

    def test_events_not_shared_between_instances(self) -> None:
        first, second = AggregateRoot(), AggregateRoot()
        first.add_event(DomainEvent(event_type="a"))
        assert second.pending_events == []
