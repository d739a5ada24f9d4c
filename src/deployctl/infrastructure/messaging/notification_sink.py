"""Notification sink implementations."""

from __future__ import annotations

import json
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from deployctl.domain.events.lifecycle_events import LifecycleEvent
from deployctl.domain.ports.services import NotificationSink


logger = structlog.get_logger(__name__)

EventHandler = Callable[[LifecycleEvent], Awaitable[None]]

DEFAULT_MAX_EVENTS = 1000


class InMemoryNotificationSink(NotificationSink):
    """In-memory sink for development/testing.

    Keeps only the most recent ``max_events`` events so a long-running
    process without a broker does not grow without bound.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self._events: deque[LifecycleEvent] = deque(maxlen=max_events)
        self._handlers: dict[str, list[EventHandler]] = {}

    async def publish(self, event: LifecycleEvent) -> None:
        self._events.append(event)
        logger.info(
            "event_published",
            event_type=event.event_type,
            operation_id=event.operation_id,
            service=event.service,
        )

        for handler in self._handlers.get(event.event_type, []):
            await handler(event)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    @property
    def published_events(self) -> list[LifecycleEvent]:
        return list(self._events)

    def events_for(self, operation_id: str) -> list[LifecycleEvent]:
        return [e for e in self._events if e.operation_id == operation_id]

    def clear(self) -> None:
        self._events.clear()


class KafkaNotificationSink(NotificationSink):
    """Publishes lifecycle events to ``<prefix>.<event_type>`` topics.

    Events are keyed by service so each service's events stay ordered
    within a partition.
    """

    def __init__(self, producer: Any, topic_prefix: str = "deployctl") -> None:
        self._producer = producer
        self._topic_prefix = topic_prefix

    async def publish(self, event: LifecycleEvent) -> None:
        topic = f"{self._topic_prefix}.{event.event_type}"
        value = json.dumps(event.model_dump(mode="json")).encode("utf-8")

        await self._producer.send_and_wait(
            topic, value=value, key=event.service.encode("utf-8")
        )
        logger.info("kafka_event_published", topic=topic, operation_id=event.operation_id)
