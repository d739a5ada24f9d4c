"""Lifecycle events emitted by controller operations."""

from __future__ import annotations

from enum import Enum

from deployctl.domain.models.base import DomainEvent


class LifecycleEventKind(str, Enum):
    STARTED = "started"
    STAGE_PROGRESS = "stage-progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LifecycleEvent(DomainEvent):
    """Base lifecycle event consumed by notification sinks and the audit log."""

    kind: LifecycleEventKind
    operation_id: str
    operation_kind: str
    service: str
    actor: str
    last_completed_stage: str
    artifact_ref: str | None = None
    preview_id: str | None = None
    outcome: str | None = None
    error_kind: str | None = None
    diagnostic: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.kind in {LifecycleEventKind.SUCCEEDED, LifecycleEventKind.FAILED}


class OperationStarted(LifecycleEvent):
    """Emitted once the service lock is held."""

    kind: LifecycleEventKind = LifecycleEventKind.STARTED
    event_type: str = "operation.started"


class StageProgress(LifecycleEvent):
    """Emitted at scan-start, preview-ready and apply-start."""

    stage: str
    kind: LifecycleEventKind = LifecycleEventKind.STAGE_PROGRESS
    event_type: str = "operation.stage_progress"


class OperationSucceeded(LifecycleEvent):
    """Emitted when the new revision has been recorded."""

    sequence: int
    rolled_back_from: int | None = None
    kind: LifecycleEventKind = LifecycleEventKind.SUCCEEDED
    outcome: str | None = "succeeded"
    event_type: str = "operation.succeeded"


class OperationFailed(LifecycleEvent):
    """Emitted when an operation ends without recording a revision."""

    kind: LifecycleEventKind = LifecycleEventKind.FAILED
    event_type: str = "operation.failed"
