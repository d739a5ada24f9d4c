"""SQL implementation of the lifecycle event audit log."""

from __future__ import annotations

from sqlalchemy import select

from deployctl.domain.events.lifecycle_events import (
    LifecycleEvent,
    LifecycleEventKind,
    OperationFailed,
    OperationStarted,
    OperationSucceeded,
    StageProgress,
)
from deployctl.domain.ports.repositories import LifecycleEventLog
from deployctl.infrastructure.persistence.database import DatabaseManager
from deployctl.infrastructure.persistence.models import LifecycleEventORM


EVENT_CLASSES: dict[LifecycleEventKind, type[LifecycleEvent]] = {
    LifecycleEventKind.STARTED: OperationStarted,
    LifecycleEventKind.STAGE_PROGRESS: StageProgress,
    LifecycleEventKind.SUCCEEDED: OperationSucceeded,
    LifecycleEventKind.FAILED: OperationFailed,
}


class SqlLifecycleEventLog(LifecycleEventLog):
    """Write-once audit trail of every emitted lifecycle event."""

    def __init__(self, database: DatabaseManager) -> None:
        self._db = database

    async def record(self, event: LifecycleEvent) -> None:
        async with self._db.session() as session:
            session.add(LifecycleEventORM(
                event_id=event.event_id,
                event_type=event.event_type,
                kind=event.kind.value,
                operation_id=event.operation_id,
                service=event.service,
                occurred_at=event.occurred_at,
                payload=event.model_dump(mode="json"),
                diagnostic=event.diagnostic,
            ))

    async def list_for_service(self, service: str, limit: int = 100) -> list[LifecycleEvent]:
        async with self._db.session() as session:
            result = await session.execute(
                select(LifecycleEventORM)
                .where(LifecycleEventORM.service == service)
                .order_by(LifecycleEventORM.id.desc())
                .limit(limit)
            )
            return [self._to_domain(orm) for orm in result.scalars().all()]

    async def list_for_operation(self, operation_id: str) -> list[LifecycleEvent]:
        async with self._db.session() as session:
            result = await session.execute(
                select(LifecycleEventORM)
                .where(LifecycleEventORM.operation_id == operation_id)
                .order_by(LifecycleEventORM.id)
            )
            return [self._to_domain(orm) for orm in result.scalars().all()]

    def _to_domain(self, orm: LifecycleEventORM) -> LifecycleEvent:
        event_class = EVENT_CLASSES[LifecycleEventKind(orm.kind)]
        return event_class.model_validate(orm.payload)
