"""Deployment operation aggregate with the per-operation state machine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from deployctl.domain.events.lifecycle_events import (
    OperationFailed,
    OperationStarted,
    OperationSucceeded,
    StageProgress,
)
from deployctl.domain.models.base import AggregateRoot, generate_id, utc_now, ValueObject
from deployctl.domain.models.cancellation import CancellationToken
from deployctl.domain.models.revision import Revision


DIAGNOSTIC_EXCERPT_LENGTH = 2000


class OperationKind(str, Enum):
    DEPLOY = "deploy"
    ROLLBACK = "rollback"


class OperationStage(str, Enum):
    """Controller operation lifecycle states."""

    IDLE = "idle"
    STARTED = "started"
    SCANNING = "scanning"
    PREVIEWING = "previewing"
    APPLYING = "applying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# State machine transitions. Scanning is optional, nothing is re-entered.
# IDLE -> FAILED covers rollbacks rejected by their preconditions.
STAGE_TRANSITIONS: dict[OperationStage, set[OperationStage]] = {
    OperationStage.IDLE: {OperationStage.STARTED, OperationStage.FAILED},
    OperationStage.STARTED: {
        OperationStage.SCANNING, OperationStage.PREVIEWING, OperationStage.FAILED,
    },
    OperationStage.SCANNING: {OperationStage.PREVIEWING, OperationStage.FAILED},
    OperationStage.PREVIEWING: {OperationStage.APPLYING, OperationStage.FAILED},
    OperationStage.APPLYING: {OperationStage.SUCCEEDED, OperationStage.FAILED},
    OperationStage.SUCCEEDED: set(),
    OperationStage.FAILED: set(),
}


class ErrorKind(str, Enum):
    """Failure taxonomy surfaced to callers and notification consumers."""

    BUSY = "busy"
    SCAN_REJECTED = "scan-rejected"
    PREVIEW_TIMEOUT = "preview-timeout"
    PREVIEW_REJECTED = "preview-rejected"
    APPLY_TIMEOUT = "apply-timeout"
    APPLY_REJECTED = "apply-rejected"
    INSUFFICIENT_HISTORY = "insufficient-history"
    NO_ROLLBACK_TARGET = "no-rollback-target"
    CANCELLED = "cancelled"


class OperationOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DeployOptions(ValueObject):
    """Caller options for a deploy or rollback."""

    scan: bool = False
    cluster: str | None = None
    actor: str = "system"
    timeout_seconds: float | None = Field(default=None, gt=0)
    scan_timeout_seconds: float | None = Field(default=None, gt=0)
    correlation_id: str = ""
    cancellation: CancellationToken | None = None

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


class OperationContext(ValueObject):
    """Immutable handoff record threaded through the stages of one operation."""

    operation_id: str = Field(default_factory=generate_id)
    kind: OperationKind
    service: str
    actor: str
    cluster: str
    artifact_ref: str | None = None
    rollback_from: int | None = None
    scan: bool = False
    timeout_seconds: float
    scan_timeout_seconds: float
    correlation_id: str = ""
    started_at: datetime = Field(default_factory=utc_now)

    def targeting(self, artifact_ref: str, rollback_from: int | None = None) -> OperationContext:
        """Return a copy bound to the resolved target artifact."""
        return self.model_copy(
            update={"artifact_ref": artifact_ref, "rollback_from": rollback_from}
        )


class DeploymentOperation(AggregateRoot):
    """One in-flight deploy or rollback and the lifecycle events it emits."""

    context: OperationContext
    stage: OperationStage = OperationStage.IDLE
    last_completed_stage: OperationStage = OperationStage.IDLE
    preview_id: str | None = None
    error_kind: ErrorKind | None = None
    reason: str = ""
    revision: Revision | None = None

    def _transition_to(self, new_stage: OperationStage) -> None:
        valid = STAGE_TRANSITIONS.get(self.stage, set())
        if new_stage not in valid:
            raise InvalidStageTransitionError(
                f"Cannot transition from {self.stage.value} to {new_stage.value}. "
                f"Valid transitions: {sorted(s.value for s in valid)}"
            )
        if new_stage not in {OperationStage.SUCCEEDED, OperationStage.FAILED}:
            self.last_completed_stage = new_stage
        self.stage = new_stage
        self.touch()

    def _event_fields(self) -> dict[str, object]:
        ctx = self.context
        return {
            "operation_id": self.id,
            "operation_kind": ctx.kind.value,
            "service": ctx.service,
            "actor": ctx.actor,
            "artifact_ref": ctx.artifact_ref,
            "last_completed_stage": self.last_completed_stage.value,
            "preview_id": self.preview_id,
            "correlation_id": ctx.correlation_id or self.id,
        }

    def start(self) -> None:
        self._transition_to(OperationStage.STARTED)
        self.add_event(OperationStarted(**self._event_fields()))

    def start_scan(self) -> None:
        self._transition_to(OperationStage.SCANNING)
        self.add_event(StageProgress(stage="scan-start", **self._event_fields()))

    def target(self, artifact_ref: str, rollback_from: int | None = None) -> None:
        """Bind the resolved target artifact to the operation context."""
        self.context = self.context.targeting(artifact_ref, rollback_from)

    def start_preview(self) -> None:
        self._transition_to(OperationStage.PREVIEWING)

    def preview_ready(self, preview_id: str | None) -> None:
        self.preview_id = preview_id
        self.add_event(StageProgress(stage="preview-ready", **self._event_fields()))

    def start_apply(self) -> None:
        self._transition_to(OperationStage.APPLYING)
        self.add_event(StageProgress(stage="apply-start", **self._event_fields()))

    def succeed(self, revision: Revision) -> None:
        self.revision = revision
        self._transition_to(OperationStage.SUCCEEDED)
        self.add_event(OperationSucceeded(
            sequence=revision.sequence,
            rolled_back_from=revision.rolled_back_from,
            **self._event_fields(),
        ))

    def fail(self, error_kind: ErrorKind, reason: str, preview_id: str | None = None) -> None:
        if preview_id:
            self.preview_id = preview_id
        self.error_kind = error_kind
        self.reason = reason
        self._transition_to(OperationStage.FAILED)
        outcome = (
            OperationOutcome.CANCELLED
            if error_kind == ErrorKind.CANCELLED
            else OperationOutcome.FAILED
        )
        self.add_event(OperationFailed(
            outcome=outcome.value,
            error_kind=error_kind.value,
            diagnostic=reason[:DIAGNOSTIC_EXCERPT_LENGTH],
            **self._event_fields(),
        ))

    @property
    def is_terminal(self) -> bool:
        return self.stage in {OperationStage.SUCCEEDED, OperationStage.FAILED}

    def to_result(self) -> OperationResult:
        if self.stage == OperationStage.SUCCEEDED:
            outcome = OperationOutcome.SUCCEEDED
        elif self.error_kind == ErrorKind.CANCELLED:
            outcome = OperationOutcome.CANCELLED
        else:
            outcome = OperationOutcome.FAILED
        return OperationResult(
            operation_id=self.id,
            service=self.context.service,
            kind=self.context.kind,
            outcome=outcome,
            error_kind=self.error_kind,
            reason=self.reason,
            revision=self.revision,
            artifact_ref=self.context.artifact_ref,
            preview_id=self.preview_id,
            last_completed_stage=self.last_completed_stage,
        )


class OperationResult(ValueObject):
    """What a deploy or rollback call returns."""

    operation_id: str
    service: str
    kind: OperationKind
    outcome: OperationOutcome
    error_kind: ErrorKind | None = None
    reason: str = ""
    revision: Revision | None = None
    artifact_ref: str | None = None
    preview_id: str | None = None
    last_completed_stage: OperationStage = OperationStage.IDLE

    @property
    def succeeded(self) -> bool:
        return self.outcome == OperationOutcome.SUCCEEDED

    @classmethod
    def busy(cls, context: OperationContext) -> OperationResult:
        return cls(
            operation_id=context.operation_id,
            service=context.service,
            kind=context.kind,
            outcome=OperationOutcome.FAILED,
            error_kind=ErrorKind.BUSY,
            reason=f"Another operation is in flight for service {context.service}",
            artifact_ref=context.artifact_ref,
        )


class InvalidStageTransitionError(Exception):
    """Raised when an invalid stage transition is attempted."""
