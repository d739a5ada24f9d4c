"""Domain models package.

The operation aggregate lives in ``deployctl.domain.models.operation`` and is
not re-exported here because it depends on the events package.
"""

from deployctl.domain.models.base import (
    AggregateRoot,
    DomainEntity,
    DomainEvent,
    generate_id,
    utc_now,
    ValueObject,
)
from deployctl.domain.models.cancellation import CancellationToken
from deployctl.domain.models.change import (
    CHANGE_TRANSITIONS,
    ChangeFailure,
    ChangeOperation,
    ChangePhase,
    ChangeResult,
    InvalidChangeTransitionError,
    NO_CHANGES_REASON,
    PreviewState,
    PreviewStatus,
    StabilizationState,
    StabilizationStatus,
)
from deployctl.domain.models.revision import (
    Revision,
    RevisionOutcome,
    ServiceDeployment,
    ServiceStatus,
    validate_artifact_ref,
)
from deployctl.domain.models.scan import ScanReport


__all__ = [
    "AggregateRoot",
    "CHANGE_TRANSITIONS",
    "CancellationToken",
    "ChangeFailure",
    "ChangeOperation",
    "ChangePhase",
    "ChangeResult",
    "DomainEntity",
    "DomainEvent",
    "InvalidChangeTransitionError",
    "NO_CHANGES_REASON",
    "PreviewState",
    "PreviewStatus",
    "Revision",
    "RevisionOutcome",
    "ScanReport",
    "ServiceDeployment",
    "ServiceStatus",
    "StabilizationState",
    "StabilizationStatus",
    "ValueObject",
    "generate_id",
    "utc_now",
    "validate_artifact_ref",
]
