"""Change operation model for the preview/apply protocol."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from deployctl.domain.models.base import DomainEntity, utc_now, ValueObject


class ChangePhase(str, Enum):
    """Phases of one preview/apply cycle."""

    PREVIEWING = "previewing"
    PREVIEW_READY = "preview-ready"
    PREVIEWING_FAILED = "previewing-failed"
    APPLYING = "applying"
    APPLIED = "applied"
    APPLY_FAILED = "apply-failed"


CHANGE_TRANSITIONS: dict[ChangePhase, set[ChangePhase]] = {
    ChangePhase.PREVIEWING: {ChangePhase.PREVIEW_READY, ChangePhase.PREVIEWING_FAILED},
    ChangePhase.PREVIEW_READY: {ChangePhase.APPLYING, ChangePhase.PREVIEWING_FAILED},
    ChangePhase.PREVIEWING_FAILED: set(),
    ChangePhase.APPLYING: {ChangePhase.APPLIED, ChangePhase.APPLY_FAILED},
    ChangePhase.APPLIED: set(),
    ChangePhase.APPLY_FAILED: set(),
}


class ChangeFailure(str, Enum):
    """Classified failure of a preview/apply cycle."""

    PREVIEW_TIMEOUT = "preview-timeout"
    PREVIEW_REJECTED = "preview-rejected"
    APPLY_TIMEOUT = "apply-timeout"
    APPLY_REJECTED = "apply-rejected"
    CANCELLED = "cancelled"


NO_CHANGES_REASON = "no changes"


class PreviewState(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class StabilizationState(str, Enum):
    IN_PROGRESS = "in-progress"
    SETTLED = "settled"
    FAILED = "failed"


class PreviewStatus(ValueObject):
    """Backend answer to describe-preview."""

    preview_id: str
    state: PreviewState
    reason: str = ""
    changes: list[str] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)


class StabilizationStatus(ValueObject):
    """Backend answer to describe-stabilization."""

    preview_id: str
    state: StabilizationState
    reason: str = ""
    running_count: int = 0
    desired_count: int = 0


class ChangeOperation(DomainEntity):
    """One preview/apply cycle, owned by the change coordinator while it runs."""

    service: str
    target_ref: str
    preview_id: str | None = None
    phase: ChangePhase = ChangePhase.PREVIEWING
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    failure_reason: str = ""

    def advance(self, phase: ChangePhase, reason: str = "") -> None:
        """Move to ``phase``, stamping completion on terminal phases."""
        valid = CHANGE_TRANSITIONS.get(self.phase, set())
        if phase not in valid:
            raise InvalidChangeTransitionError(
                f"Cannot move change {self.id} from {self.phase.value} to {phase.value}"
            )
        self.phase = phase
        if reason:
            self.failure_reason = reason
        if not CHANGE_TRANSITIONS[phase]:
            self.completed_at = utc_now()
        self.touch()

    @property
    def apply_issued(self) -> bool:
        return self.phase in {
            ChangePhase.APPLYING, ChangePhase.APPLIED, ChangePhase.APPLY_FAILED,
        }

    @property
    def is_terminal(self) -> bool:
        return not CHANGE_TRANSITIONS[self.phase]


class ChangeResult(ValueObject):
    """Terminal result handed back to the controller."""

    change: ChangeOperation
    failure: ChangeFailure | None = None
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.failure is None

    @property
    def preview_id(self) -> str | None:
        return self.change.preview_id


class InvalidChangeTransitionError(Exception):
    """Raised when a change operation phase transition is invalid."""
