"""Service port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from deployctl.domain.events.lifecycle_events import LifecycleEvent
from deployctl.domain.models.change import PreviewStatus, StabilizationStatus
from deployctl.domain.models.scan import ScanReport


class OrchestrationBackend(ABC):
    """Port for the two-phase change protocol of the compute platform.

    Every call is idempotent for a given preview id or client token.
    """

    @abstractmethod
    async def create_preview(self, service: str, target_ref: str, client_token: str) -> str:
        """Create a change preview and return its identifier."""

    @abstractmethod
    async def describe_preview(self, preview_id: str) -> PreviewStatus:
        """Report whether the preview is pending, ready or failed."""

    @abstractmethod
    async def apply_preview(self, preview_id: str) -> None:
        """Commit a ready preview."""

    @abstractmethod
    async def describe_stabilization(self, preview_id: str) -> StabilizationStatus:
        """Report convergence of the resource changed by an applied preview."""

    @abstractmethod
    async def discard_preview(self, preview_id: str) -> None:
        """Delete a preview that will not be applied."""


class VulnerabilityScanner(ABC):
    """Port for the image vulnerability scanner."""

    @abstractmethod
    async def scan(self, artifact_ref: str) -> ScanReport:
        """Scan an artifact and report high/critical finding counts."""


class NotificationSink(ABC):
    """Port for lifecycle event delivery."""

    @abstractmethod
    async def publish(self, event: LifecycleEvent) -> None:
        """Deliver one event."""


class DistributedLock(ABC):
    """Port for per-service mutual exclusion with try-semantics.

    ``acquire`` hands back an owner token; only that token can release or
    extend the lock, so a holder whose lock expired cannot free a lock that
    someone else has since taken.
    """

    @abstractmethod
    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> str | None:
        """Try to take the lock; return the owner token, or None if held."""

    @abstractmethod
    async def release(self, resource_id: str, token: str) -> bool:
        """Release the lock if ``token`` still owns it."""

    @abstractmethod
    async def extend(self, resource_id: str, token: str, ttl_seconds: int = 30) -> bool:
        """Extend the TTL if ``token`` still owns the lock."""

    @abstractmethod
    async def is_locked(self, resource_id: str) -> bool:
        """Check whether anyone holds the lock."""
