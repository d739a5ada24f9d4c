"""Revision history and service deployment models."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum

from pydantic import Field, field_validator

from deployctl.domain.models.base import DomainEntity, utc_now, ValueObject


ARTIFACT_REF_MAX_LENGTH = 512
_WHITESPACE = re.compile(r"\s")


class RevisionOutcome(str, Enum):
    """Outcome of the deployment that introduced a revision."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK_FROM = "rolled-back-from"

    @property
    def is_healthy(self) -> bool:
        return self is not RevisionOutcome.FAILED


def validate_artifact_ref(value: str) -> str:
    """Check the shape of an opaque artifact reference and return it stripped."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("artifact_ref must be a non-empty string")
    value = value.strip()
    if _WHITESPACE.search(value):
        raise ValueError("artifact_ref must not contain whitespace")
    if len(value) > ARTIFACT_REF_MAX_LENGTH:
        raise ValueError(f"artifact_ref must be at most {ARTIFACT_REF_MAX_LENGTH} characters")
    return value


class Revision(ValueObject):
    """One immutable, sequence-numbered deployment record for a service."""

    service: str
    sequence: int = Field(ge=1)
    artifact_ref: str
    outcome: RevisionOutcome
    rolled_back_from: int | None = None
    operation_id: str = ""
    actor: str = ""
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("artifact_ref")
    @classmethod
    def _check_artifact_ref(cls, value: str) -> str:
        return validate_artifact_ref(value)

    @property
    def is_rollback(self) -> bool:
        return self.outcome == RevisionOutcome.ROLLED_BACK_FROM


class ServiceDeployment(DomainEntity):
    """A deployable unit and its active revision pointer."""

    name: str
    cluster: str
    active_sequence: int | None = None
    active_artifact_ref: str | None = None
    revision_count: int = 0

    def record_revision(self, revision: Revision) -> None:
        """Count a newly appended revision; healthy ones become the active one."""
        if revision.outcome.is_healthy:
            self.active_sequence = revision.sequence
            self.active_artifact_ref = revision.artifact_ref
        self.revision_count = max(self.revision_count, revision.sequence)
        self.touch()


class ServiceStatus(ValueObject):
    """Lock-free snapshot returned by status reads."""

    name: str
    cluster: str | None = None
    active_sequence: int | None = None
    active_artifact_ref: str | None = None
    revision_count: int = 0
    operation_in_progress: bool = False
    last_revision: Revision | None = None
    updated_at: datetime | None = None

    @property
    def is_deployed(self) -> bool:
        return self.active_sequence is not None
