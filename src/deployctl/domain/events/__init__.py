"""Domain events package."""

from deployctl.domain.events.lifecycle_events import (
    LifecycleEvent,
    LifecycleEventKind,
    OperationFailed,
    OperationStarted,
    OperationSucceeded,
    StageProgress,
)


__all__ = [
    "LifecycleEvent",
    "LifecycleEventKind",
    "OperationFailed",
    "OperationStarted",
    "OperationSucceeded",
    "StageProgress",
]
