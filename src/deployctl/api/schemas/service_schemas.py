"""API schemas for service deployment endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from deployctl.domain.models.operation import (
    ErrorKind,
    OperationKind,
    OperationOutcome,
    OperationStage,
)
from deployctl.domain.models.revision import ARTIFACT_REF_MAX_LENGTH, RevisionOutcome


class DeployRequest(BaseModel):
    artifact_ref: str = Field(..., min_length=1, max_length=ARTIFACT_REF_MAX_LENGTH)
    scan: bool = False
    cluster: str | None = Field(default=None, min_length=1, max_length=255)
    timeout_seconds: float | None = Field(default=None, gt=0, le=3600)


class RollbackRequest(BaseModel):
    scan: bool = False
    timeout_seconds: float | None = Field(default=None, gt=0, le=3600)


class RevisionResponse(BaseModel):
    service: str
    sequence: int
    artifact_ref: str
    outcome: RevisionOutcome
    rolled_back_from: int | None
    operation_id: str
    actor: str
    created_at: datetime


class ServiceStatusResponse(BaseModel):
    name: str
    cluster: str | None
    active_sequence: int | None
    active_artifact_ref: str | None
    revision_count: int
    operation_in_progress: bool
    last_revision: RevisionResponse | None = None
    updated_at: datetime | None = None


class OperationResponse(BaseModel):
    operation_id: str
    service: str
    kind: OperationKind
    outcome: OperationOutcome
    error_kind: ErrorKind | None = None
    reason: str = ""
    artifact_ref: str | None = None
    preview_id: str | None = None
    last_completed_stage: OperationStage
    revision: RevisionResponse | None = None


class LifecycleEventResponse(BaseModel):
    event_id: str
    event_type: str
    kind: str
    occurred_at: datetime
    operation_id: str
    operation_kind: str
    actor: str
    last_completed_stage: str
    artifact_ref: str | None = None
    preview_id: str | None = None
    outcome: str | None = None
    error_kind: str | None = None
    diagnostic: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    detail: str
    error_kind: ErrorKind | None = None
    operation: OperationResponse | None = None
