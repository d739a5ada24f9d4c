"""SQL implementation of the revision history store."""

from __future__ import annotations

from sqlalchemy import func, select

from deployctl.domain.models.revision import (
    Revision,
    RevisionOutcome,
    ServiceDeployment,
)
from deployctl.domain.ports.repositories import RevisionHistoryStore
from deployctl.infrastructure.persistence.database import DatabaseManager
from deployctl.infrastructure.persistence.models import RevisionORM, ServiceORM


class SqlRevisionHistoryStore(RevisionHistoryStore):
    """Revision ledger backed by PostgreSQL or SQLite.

    ``append`` assigns the next sequence number and moves the service's
    active pointer in the same transaction. The composite primary key
    rejects a duplicate sequence should two writers ever race.
    """

    def __init__(self, database: DatabaseManager) -> None:
        self._db = database

    async def append(
        self,
        service: str,
        artifact_ref: str,
        outcome: RevisionOutcome,
        *,
        cluster: str,
        rolled_back_from: int | None = None,
        operation_id: str = "",
        actor: str = "",
    ) -> Revision:
        async with self._db.session() as session:
            result = await session.execute(
                select(func.max(RevisionORM.sequence)).where(RevisionORM.service == service)
            )
            sequence = (result.scalar_one_or_none() or 0) + 1

            revision = Revision(
                service=service,
                sequence=sequence,
                artifact_ref=artifact_ref,
                outcome=outcome,
                rolled_back_from=rolled_back_from,
                operation_id=operation_id,
                actor=actor,
            )
            session.add(self._revision_to_orm(revision))

            record = await session.get(ServiceORM, service)
            deployment = (
                self._service_to_domain(record) if record is not None
                else ServiceDeployment(id=service, name=service, cluster=cluster)
            )
            deployment.record_revision(revision)
            if record is None:
                record = ServiceORM(name=service, created_at=deployment.created_at)
                session.add(record)
            self._apply_service(record, deployment)
            await session.flush()
            return revision

    async def list_recent(self, service: str, limit: int = 50) -> list[Revision]:
        async with self._db.session() as session:
            result = await session.execute(
                select(RevisionORM)
                .where(RevisionORM.service == service)
                .order_by(RevisionORM.sequence.desc())
                .limit(limit)
            )
            return [self._revision_to_domain(orm) for orm in result.scalars().all()]

    async def count_healthy(self, service: str) -> int:
        async with self._db.session() as session:
            result = await session.execute(
                select(func.count()).select_from(RevisionORM).where(
                    RevisionORM.service == service,
                    RevisionORM.outcome != RevisionOutcome.FAILED.value,
                )
            )
            return result.scalar_one()

    async def get_service(self, service: str) -> ServiceDeployment | None:
        async with self._db.session() as session:
            orm = await session.get(ServiceORM, service)
            return self._service_to_domain(orm) if orm else None

    async def list_services(self) -> list[ServiceDeployment]:
        async with self._db.session() as session:
            result = await session.execute(select(ServiceORM).order_by(ServiceORM.name))
            return [self._service_to_domain(orm) for orm in result.scalars().all()]

    def _revision_to_orm(self, revision: Revision) -> RevisionORM:
        return RevisionORM(
            service=revision.service,
            sequence=revision.sequence,
            artifact_ref=revision.artifact_ref,
            outcome=revision.outcome.value,
            rolled_back_from=revision.rolled_back_from,
            operation_id=revision.operation_id,
            actor=revision.actor,
            created_at=revision.created_at,
        )

    def _revision_to_domain(self, orm: RevisionORM) -> Revision:
        return Revision(
            service=orm.service,
            sequence=orm.sequence,
            artifact_ref=orm.artifact_ref,
            outcome=RevisionOutcome(orm.outcome),
            rolled_back_from=orm.rolled_back_from,
            operation_id=orm.operation_id or "",
            actor=orm.actor or "",
            created_at=orm.created_at,
        )

    def _service_to_domain(self, orm: ServiceORM) -> ServiceDeployment:
        return ServiceDeployment(
            id=orm.name,
            name=orm.name,
            cluster=orm.cluster,
            active_sequence=orm.active_sequence,
            active_artifact_ref=orm.active_artifact_ref,
            revision_count=orm.revision_count,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    def _apply_service(self, orm: ServiceORM, deployment: ServiceDeployment) -> None:
        orm.cluster = deployment.cluster
        orm.active_sequence = deployment.active_sequence
        orm.active_artifact_ref = deployment.active_artifact_ref
        orm.revision_count = deployment.revision_count
        orm.updated_at = deployment.updated_at
