"""Controller error taxonomy.

Every failure below the controller is converted into one of these before it
reaches a caller. The controller turns them into ``OperationResult`` values
and terminal ``OperationFailed`` events.
"""

from __future__ import annotations

from deployctl.domain.models.change import ChangeFailure
from deployctl.domain.models.operation import ErrorKind


class DeploymentControlError(Exception):
    """Base class for classified controller failures."""

    kind: ErrorKind

    def __init__(self, message: str, preview_id: str | None = None) -> None:
        super().__init__(message)
        self.reason = message
        self.preview_id = preview_id


class ScanRejectedError(DeploymentControlError):
    kind = ErrorKind.SCAN_REJECTED


class PreviewTimeoutError(DeploymentControlError):
    kind = ErrorKind.PREVIEW_TIMEOUT


class PreviewRejectedError(DeploymentControlError):
    kind = ErrorKind.PREVIEW_REJECTED


class ApplyTimeoutError(DeploymentControlError):
    kind = ErrorKind.APPLY_TIMEOUT


class ApplyRejectedError(DeploymentControlError):
    kind = ErrorKind.APPLY_REJECTED


class InsufficientHistoryError(DeploymentControlError):
    kind = ErrorKind.INSUFFICIENT_HISTORY


class NoRollbackTargetError(DeploymentControlError):
    kind = ErrorKind.NO_ROLLBACK_TARGET


class OperationCancelledError(DeploymentControlError):
    kind = ErrorKind.CANCELLED


CHANGE_FAILURE_ERRORS: dict[ChangeFailure, type[DeploymentControlError]] = {
    ChangeFailure.PREVIEW_TIMEOUT: PreviewTimeoutError,
    ChangeFailure.PREVIEW_REJECTED: PreviewRejectedError,
    ChangeFailure.APPLY_TIMEOUT: ApplyTimeoutError,
    ChangeFailure.APPLY_REJECTED: ApplyRejectedError,
    ChangeFailure.CANCELLED: OperationCancelledError,
}


class BackendError(Exception):
    """Raised by orchestration backend adapters; never escapes the coordinator."""


class ScannerError(Exception):
    """Raised by vulnerability scanner adapters."""
