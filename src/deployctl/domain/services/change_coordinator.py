"""Change coordinator driving the backend's preview/apply protocol."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from deployctl.domain.models.cancellation import CancellationToken
from deployctl.domain.models.change import (
    ChangeFailure,
    ChangeOperation,
    ChangePhase,
    ChangeResult,
    NO_CHANGES_REASON,
    PreviewState,
    StabilizationState,
)
from deployctl.domain.ports.services import OrchestrationBackend
from deployctl.infrastructure.observability.metrics import (
    CHANGE_FAILURES,
    CHANGE_PHASE_TRANSITIONS,
    CHANGE_POLLS,
)
from deployctl.infrastructure.observability.tracing import get_tracer


logger = structlog.get_logger(__name__)

PhaseCallback = Callable[[ChangeOperation], Awaitable[None]]

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_TIMEOUT_SECONDS = 300.0


class ChangeCoordinator:
    """Stateless executor for one preview/apply cycle.

    The coordinator owns the ``ChangeOperation`` while it runs and hands a
    terminal ``ChangeResult`` back to the caller. Backend exceptions are
    classified by phase and never propagate. Preview and stabilization waits
    use independent timeout windows of the same length.
    """

    def __init__(
        self,
        backend: OrchestrationBackend,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._backend = backend
        self._poll_interval = poll_interval_seconds
        self._default_timeout = default_timeout_seconds

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _advance(self, change: ChangeOperation, phase: ChangePhase, reason: str = "") -> None:
        change.advance(phase, reason)
        CHANGE_PHASE_TRANSITIONS.labels(phase=phase.value).inc()
        logger.info(
            "change_phase_changed",
            change_id=change.id,
            service=change.service,
            preview_id=change.preview_id,
            phase=phase.value,
            reason=reason or None,
        )

    def _finish(
        self, change: ChangeOperation, failure: ChangeFailure | None = None, reason: str = ""
    ) -> ChangeResult:
        if failure is not None:
            CHANGE_FAILURES.labels(failure=failure.value).inc()
            logger.warning(
                "change_failed",
                change_id=change.id,
                service=change.service,
                preview_id=change.preview_id,
                failure=failure.value,
                reason=reason,
            )
        return ChangeResult(change=change, failure=failure, reason=reason)

    async def _discard(self, change: ChangeOperation) -> None:
        """Best-effort preview cleanup; failures are logged, not raised."""
        if change.preview_id is None:
            return
        try:
            await self._backend.discard_preview(change.preview_id)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "preview_discard_failed",
                change_id=change.id,
                preview_id=change.preview_id,
                error=str(e),
            )
        else:
            logger.info("preview_discarded", change_id=change.id, preview_id=change.preview_id)

    async def _sleep(self, seconds: float, cancellation: CancellationToken | None) -> None:
        if cancellation is not None:
            await cancellation.wait(seconds)
        else:
            await asyncio.sleep(seconds)

    async def _cancel_before_apply(
        self, change: ChangeOperation, cancellation: CancellationToken
    ) -> ChangeResult:
        await self._discard(change)
        self._advance(change, ChangePhase.PREVIEWING_FAILED, ChangeFailure.CANCELLED.value)
        return self._finish(change, ChangeFailure.CANCELLED, cancellation.reason)

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    async def preview_and_apply(
        self,
        service: str,
        target_ref: str,
        timeout: float | None = None,
        cancellation: CancellationToken | None = None,
        on_phase: PhaseCallback | None = None,
    ) -> ChangeResult:
        """Preview a change to ``target_ref``, apply it and wait for it to settle."""
        timeout = timeout if timeout is not None else self._default_timeout
        change = ChangeOperation(service=service, target_ref=target_ref)

        with get_tracer().start_as_current_span("change.preview_and_apply") as span:
            span.set_attribute("deployctl.service", service)
            span.set_attribute("deployctl.target_ref", target_ref)
            result = await self._run(change, timeout, cancellation, on_phase)
            span.set_attribute("deployctl.change_phase", result.change.phase.value)
            return result

    async def _run(
        self,
        change: ChangeOperation,
        timeout: float,
        cancellation: CancellationToken | None,
        on_phase: PhaseCallback | None,
    ) -> ChangeResult:
        if cancellation is not None and cancellation.cancelled:
            return await self._cancel_before_apply(change, cancellation)

        try:
            change.preview_id = await self._backend.create_preview(
                change.service, change.target_ref, client_token=change.id
            )
        except Exception as e:  # noqa: BLE001
            self._advance(change, ChangePhase.PREVIEWING_FAILED, str(e))
            return self._finish(change, ChangeFailure.PREVIEW_REJECTED, str(e))

        logger.info(
            "preview_created",
            change_id=change.id,
            service=change.service,
            target_ref=change.target_ref,
            preview_id=change.preview_id,
        )

        result = await self._wait_for_preview(change, timeout, cancellation)
        if result is not None:
            return result

        self._advance(change, ChangePhase.PREVIEW_READY)
        if on_phase is not None:
            await on_phase(change)

        if cancellation is not None and cancellation.cancelled:
            return await self._cancel_before_apply(change, cancellation)

        self._advance(change, ChangePhase.APPLYING)
        if on_phase is not None:
            await on_phase(change)

        try:
            await self._backend.apply_preview(change.preview_id)
        except Exception as e:  # noqa: BLE001
            self._advance(change, ChangePhase.APPLY_FAILED, str(e))
            return self._finish(change, ChangeFailure.APPLY_REJECTED, str(e))

        return await self._wait_for_stabilization(change, timeout, cancellation)

    async def _wait_for_preview(
        self,
        change: ChangeOperation,
        timeout: float,
        cancellation: CancellationToken | None,
    ) -> ChangeResult | None:
        """Poll until the preview is ready; return a failure result or None."""
        assert change.preview_id is not None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            if cancellation is not None and cancellation.cancelled:
                return await self._cancel_before_apply(change, cancellation)

            CHANGE_POLLS.labels(step="preview").inc()
            try:
                status = await self._backend.describe_preview(change.preview_id)
            except Exception as e:  # noqa: BLE001
                self._advance(change, ChangePhase.PREVIEWING_FAILED, str(e))
                return self._finish(change, ChangeFailure.PREVIEW_REJECTED, str(e))

            if status.state == PreviewState.READY:
                if status.has_changes:
                    return None
                await self._discard(change)
                self._advance(change, ChangePhase.PREVIEWING_FAILED, NO_CHANGES_REASON)
                return self._finish(change, ChangeFailure.PREVIEW_REJECTED, NO_CHANGES_REASON)

            if status.state == PreviewState.FAILED:
                reason = status.reason or "preview failed"
                self._advance(change, ChangePhase.PREVIEWING_FAILED, reason)
                return self._finish(change, ChangeFailure.PREVIEW_REJECTED, reason)

            remaining = deadline - loop.time()
            if remaining <= 0:
                reason = f"preview not ready after {timeout:g}s"
                self._advance(change, ChangePhase.PREVIEWING_FAILED, reason)
                return self._finish(change, ChangeFailure.PREVIEW_TIMEOUT, reason)

            await self._sleep(min(self._poll_interval, remaining), cancellation)

    async def _wait_for_stabilization(
        self,
        change: ChangeOperation,
        timeout: float,
        cancellation: CancellationToken | None,
    ) -> ChangeResult:
        """Poll until the applied change settles, fails or times out.

        Cancellation is not honoured once apply is issued. The
        backend is already moving to the new artifact, so the loop runs to a
        real outcome and the caller can record it.
        """
        assert change.preview_id is not None
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        cancel_logged = False

        while True:
            if cancellation is not None and cancellation.cancelled and not cancel_logged:
                cancel_logged = True
                logger.warning(
                    "cancellation_ignored_after_apply",
                    change_id=change.id,
                    service=change.service,
                    preview_id=change.preview_id,
                    reason=cancellation.reason,
                )

            CHANGE_POLLS.labels(step="stabilization").inc()
            try:
                status = await self._backend.describe_stabilization(change.preview_id)
            except Exception as e:  # noqa: BLE001
                self._advance(change, ChangePhase.APPLY_FAILED, str(e))
                return self._finish(change, ChangeFailure.APPLY_REJECTED, str(e))

            if status.state == StabilizationState.SETTLED:
                self._advance(change, ChangePhase.APPLIED)
                return self._finish(change)

            if status.state == StabilizationState.FAILED:
                reason = status.reason or "stabilization failed"
                self._advance(change, ChangePhase.APPLY_FAILED, reason)
                return self._finish(change, ChangeFailure.APPLY_REJECTED, reason)

            remaining = deadline - loop.time()
            if remaining <= 0:
                reason = f"resource not settled after {timeout:g}s"
                self._advance(change, ChangePhase.APPLY_FAILED, reason)
                return self._finish(change, ChangeFailure.APPLY_TIMEOUT, reason)

            await asyncio.sleep(min(self._poll_interval, remaining))
