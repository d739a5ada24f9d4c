"""Simulated orchestration backend and vulnerability scanner."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field

import structlog

from deployctl.domain.errors import BackendError, ScannerError
from deployctl.domain.models.change import (
    PreviewState,
    PreviewStatus,
    StabilizationState,
    StabilizationStatus,
)
from deployctl.domain.models.scan import ScanReport
from deployctl.domain.ports.services import OrchestrationBackend, VulnerabilityScanner


logger = structlog.get_logger(__name__)


@dataclass
class _Preview:
    preview_id: str
    service: str
    target_ref: str
    client_token: str
    changes: list[str]
    describe_calls: int = 0
    stabilization_calls: int = 0
    applied: bool = False
    settled: bool = False
    discarded: bool = False


@dataclass
class BackendFaults:
    """Per-artifact failure injection for the simulated backend."""

    create_errors: dict[str, str] = field(default_factory=dict)
    preview_rejections: dict[str, str] = field(default_factory=dict)
    apply_errors: dict[str, str] = field(default_factory=dict)
    stabilization_failures: dict[str, str] = field(default_factory=dict)
    hanging_previews: set[str] = field(default_factory=set)
    hanging_stabilizations: set[str] = field(default_factory=set)


class SimulatedOrchestrationBackend(OrchestrationBackend):
    """In-memory compute platform for development/testing.

    Tracks the live artifact per service and walks each preview through
    pending, ready, applied and settled after a configurable number of
    describe calls. A preview for the artifact already live reports no
    changes. Failures are injected per target artifact via ``faults``.
    """

    def __init__(
        self,
        preview_polls: int = 1,
        stabilization_polls: int = 1,
        desired_count: int = 2,
        latency_seconds: float = 0.0,
        live_artifacts: dict[str, str] | None = None,
    ) -> None:
        self._preview_polls = preview_polls
        self._stabilization_polls = stabilization_polls
        self._desired_count = desired_count
        self._latency = latency_seconds
        self._live: dict[str, str] = dict(live_artifacts or {})
        self._previews: dict[str, _Preview] = {}
        self._tokens: dict[str, str] = {}
        self.faults = BackendFaults()
        self.applied: list[str] = []
        self.discarded: list[str] = []

    def live_artifact(self, service: str) -> str | None:
        return self._live.get(service)

    def preview(self, preview_id: str) -> _Preview:
        return self._get(preview_id)

    @property
    def preview_count(self) -> int:
        return len(self._previews)

    def _get(self, preview_id: str) -> _Preview:
        preview = self._previews.get(preview_id)
        if preview is None:
            raise BackendError(f"Unknown preview {preview_id}")
        return preview

    async def create_preview(self, service: str, target_ref: str, client_token: str) -> str:
        await asyncio.sleep(self._latency)
        if client_token in self._tokens:
            return self._tokens[client_token]

        error = self.faults.create_errors.get(target_ref)
        if error:
            raise BackendError(error)

        live = self._live.get(service)
        changes = [] if live == target_ref else [f"image: {live or '<none>'} -> {target_ref}"]
        preview_id = f"pv-{uuid.uuid4().hex[:12]}"
        self._previews[preview_id] = _Preview(
            preview_id=preview_id,
            service=service,
            target_ref=target_ref,
            client_token=client_token,
            changes=changes,
        )
        self._tokens[client_token] = preview_id
        logger.info("simulated_preview_created", service=service, preview_id=preview_id)
        return preview_id

    async def describe_preview(self, preview_id: str) -> PreviewStatus:
        await asyncio.sleep(self._latency)
        preview = self._get(preview_id)
        preview.describe_calls += 1

        if preview.target_ref in self.faults.hanging_previews:
            return PreviewStatus(preview_id=preview_id, state=PreviewState.PENDING)
        if preview.describe_calls < self._preview_polls:
            return PreviewStatus(preview_id=preview_id, state=PreviewState.PENDING)

        rejection = self.faults.preview_rejections.get(preview.target_ref)
        if rejection:
            return PreviewStatus(
                preview_id=preview_id, state=PreviewState.FAILED, reason=rejection
            )
        return PreviewStatus(
            preview_id=preview_id, state=PreviewState.READY, changes=list(preview.changes)
        )

    async def apply_preview(self, preview_id: str) -> None:
        await asyncio.sleep(self._latency)
        preview = self._get(preview_id)
        if preview.discarded:
            raise BackendError(f"Preview {preview_id} was discarded")
        if preview.applied:
            return

        error = self.faults.apply_errors.get(preview.target_ref)
        if error:
            raise BackendError(error)

        preview.applied = True
        self.applied.append(preview_id)
        logger.info("simulated_preview_applied", service=preview.service, preview_id=preview_id)

    async def describe_stabilization(self, preview_id: str) -> StabilizationStatus:
        await asyncio.sleep(self._latency)
        preview = self._get(preview_id)
        if not preview.applied:
            raise BackendError(f"Preview {preview_id} has not been applied")
        preview.stabilization_calls += 1

        if (
            preview.target_ref in self.faults.hanging_stabilizations
            or preview.stabilization_calls < self._stabilization_polls
        ):
            return StabilizationStatus(
                preview_id=preview_id,
                state=StabilizationState.IN_PROGRESS,
                running_count=self._desired_count // 2,
                desired_count=self._desired_count,
            )

        failure = self.faults.stabilization_failures.get(preview.target_ref)
        if failure:
            return StabilizationStatus(
                preview_id=preview_id,
                state=StabilizationState.FAILED,
                reason=failure,
                desired_count=self._desired_count,
            )

        if not preview.settled:
            preview.settled = True
            self._live[preview.service] = preview.target_ref
        return StabilizationStatus(
            preview_id=preview_id,
            state=StabilizationState.SETTLED,
            running_count=self._desired_count,
            desired_count=self._desired_count,
        )

    async def discard_preview(self, preview_id: str) -> None:
        await asyncio.sleep(self._latency)
        preview = self._get(preview_id)
        if preview.applied:
            raise BackendError(f"Preview {preview_id} is already applied")
        if not preview.discarded:
            preview.discarded = True
            self.discarded.append(preview_id)


class SimulatedVulnerabilityScanner(VulnerabilityScanner):
    """Scanner returning preset findings per artifact (clean by default)."""

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self._latency = latency_seconds
        self._findings: dict[str, tuple[int, int]] = {}
        self._errors: dict[str, str] = {}
        self.scanned: list[str] = []

    def set_findings(self, artifact_ref: str, high: int = 0, critical: int = 0) -> None:
        self._findings[artifact_ref] = (high, critical)

    def set_error(self, artifact_ref: str, message: str) -> None:
        self._errors[artifact_ref] = message

    async def scan(self, artifact_ref: str) -> ScanReport:
        await asyncio.sleep(self._latency)
        self.scanned.append(artifact_ref)
        error = self._errors.get(artifact_ref)
        if error:
            raise ScannerError(error)

        high, critical = self._findings.get(artifact_ref, (0, 0))
        return ScanReport(
            artifact_ref=artifact_ref,
            high_count=high,
            critical_count=critical,
            report_ref=f"scan://{uuid.uuid4().hex[:8]}",
        )
