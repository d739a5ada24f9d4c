"""Vulnerability scan report."""

from __future__ import annotations

from pydantic import Field

from deployctl.domain.models.base import ValueObject


class ScanReport(ValueObject):
    """Finding counts reported by the vulnerability scanner."""

    artifact_ref: str
    high_count: int = Field(default=0, ge=0)
    critical_count: int = Field(default=0, ge=0)
    report_ref: str = ""

    @property
    def blocking_count(self) -> int:
        return self.high_count + self.critical_count

    def exceeds(self, threshold: int) -> bool:
        return self.blocking_count > threshold
