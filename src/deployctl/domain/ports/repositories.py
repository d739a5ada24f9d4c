"""Repository port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from deployctl.domain.events.lifecycle_events import LifecycleEvent
from deployctl.domain.models.revision import (
    Revision,
    RevisionOutcome,
    ServiceDeployment,
)


class RevisionHistoryStore(ABC):
    """Port for the durable, append-only revision ledger.

    Implementations must survive process restarts. Sequence numbers are
    assigned by ``append`` and are gap-free per service.
    """

    @abstractmethod
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
        """Record a new revision and point the service at it."""

    @abstractmethod
    async def list_recent(self, service: str, limit: int = 50) -> list[Revision]:
        """List revisions, most recent first."""

    @abstractmethod
    async def count_healthy(self, service: str) -> int:
        """Count revisions whose outcome is not ``failed``."""

    @abstractmethod
    async def get_service(self, service: str) -> ServiceDeployment | None:
        """Retrieve the service's deployment record."""

    @abstractmethod
    async def list_services(self) -> list[ServiceDeployment]:
        """List every known service."""


class LifecycleEventLog(ABC):
    """Port for the audit trail of lifecycle events."""

    @abstractmethod
    async def record(self, event: LifecycleEvent) -> None:
        """Persist a lifecycle event."""

    @abstractmethod
    async def list_for_service(self, service: str, limit: int = 100) -> list[LifecycleEvent]:
        """List a service's events, most recent first."""

    @abstractmethod
    async def list_for_operation(self, operation_id: str) -> list[LifecycleEvent]:
        """List one operation's events in emission order."""
