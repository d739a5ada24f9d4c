"""Deployment controller: the per-service deploy/rollback state machine."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

import structlog

from deployctl.config import ControllerSettings
from deployctl.domain.errors import (
    CHANGE_FAILURE_ERRORS,
    DeploymentControlError,
    InsufficientHistoryError,
    OperationCancelledError,
    ScanRejectedError,
)
from deployctl.domain.events.lifecycle_events import LifecycleEvent
from deployctl.domain.models.cancellation import CancellationToken
from deployctl.domain.models.change import ChangeOperation, ChangePhase
from deployctl.domain.models.operation import (
    DeploymentOperation,
    DeployOptions,
    ErrorKind,
    OperationContext,
    OperationKind,
    OperationResult,
    OperationStage,
)
from deployctl.domain.models.revision import (
    Revision,
    RevisionOutcome,
    ServiceStatus,
    validate_artifact_ref,
)
from deployctl.domain.ports.repositories import LifecycleEventLog, RevisionHistoryStore
from deployctl.domain.ports.services import (
    DistributedLock,
    NotificationSink,
    VulnerabilityScanner,
)
from deployctl.domain.services.change_coordinator import ChangeCoordinator
from deployctl.domain.services.rollback_resolver import resolve_rollback_target
from deployctl.infrastructure.observability.metrics import (
    BUSY_REJECTIONS,
    DISTRIBUTED_LOCK_OPERATIONS,
    NOTIFICATION_FAILURES,
    OPERATION_DURATION,
    OPERATIONS_IN_FLIGHT,
    OPERATIONS_TOTAL,
    SCANS_TOTAL,
)
from deployctl.infrastructure.observability.tracing import get_tracer


logger = structlog.get_logger(__name__)

OperationBody = Callable[[DeploymentOperation, CancellationToken | None], Awaitable[None]]
OperationStep = Callable[[DeploymentOperation], Awaitable[None]]

LOCK_EXTENSIONS_PER_TTL = 3


def service_lock_key(service: str) -> str:
    return f"service:{service}"


class DeploymentController:
    """Owns the lifecycle of deploy and rollback operations.

    Each operation holds the service's lock from its precondition check until
    its terminal event, covering scan, preview, apply and the history write.
    A background task keeps extending the lock for as long as the operation
    runs. Lock acquisition never waits: a held lock yields a ``busy`` result.

    Rollback preconditions are checked before ``Started`` is emitted, so a
    rejected rollback leaves only its terminal ``Failed`` record. Every
    failure after lock acquisition, classified or not, becomes a terminal
    ``Failed`` event and an ``OperationResult``.
    """

    def __init__(
        self,
        history: RevisionHistoryStore,
        coordinator: ChangeCoordinator,
        notification_sink: NotificationSink,
        lock_service: DistributedLock,
        scanner: VulnerabilityScanner | None = None,
        event_log: LifecycleEventLog | None = None,
        settings: ControllerSettings | None = None,
    ) -> None:
        self._history = history
        self._coordinator = coordinator
        self._sink = notification_sink
        self._lock_service = lock_service
        self._scanner = scanner
        self._event_log = event_log
        self._settings = settings or ControllerSettings()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def deploy(
        self, service: str, artifact_ref: str, options: DeployOptions | None = None
    ) -> OperationResult:
        """Scan (optionally), preview, apply and record ``artifact_ref``."""
        options = options or DeployOptions()
        context = await self._build_context(
            OperationKind.DEPLOY, service, options, validate_artifact_ref(artifact_ref)
        )
        return await self._execute(context, options.cancellation, self._run_deploy)

    async def rollback(
        self, service: str, options: DeployOptions | None = None
    ) -> OperationResult:
        """Revert the service to the revision chosen by the rollback resolver."""
        options = options or DeployOptions()
        context = await self._build_context(OperationKind.ROLLBACK, service, options)
        return await self._execute(
            context, options.cancellation, self._run_rollback, precondition=self._resolve_rollback
        )

    async def status(self, service: str) -> ServiceStatus:
        """Lock-free snapshot; may trail an in-flight operation."""
        record = await self._history.get_service(service)
        in_progress = await self._lock_service.is_locked(service_lock_key(service))
        if record is None:
            return ServiceStatus(name=service, operation_in_progress=in_progress)

        recent = await self._history.list_recent(service, limit=1)
        return ServiceStatus(
            name=record.name,
            cluster=record.cluster,
            active_sequence=record.active_sequence,
            active_artifact_ref=record.active_artifact_ref,
            revision_count=record.revision_count,
            operation_in_progress=in_progress,
            last_revision=recent[0] if recent else None,
            updated_at=record.updated_at,
        )

    async def revisions(self, service: str, limit: int = 50) -> list[Revision]:
        return await self._history.list_recent(service, limit=limit)

    async def events(self, service: str, limit: int = 100) -> list[LifecycleEvent]:
        if self._event_log is None:
            return []
        return await self._event_log.list_for_service(service, limit=limit)

    async def services(self) -> list[ServiceStatus]:
        return [await self.status(record.name) for record in await self._history.list_services()]

    # ------------------------------------------------------------------
    # Operation skeleton
    # ------------------------------------------------------------------

    async def _build_context(
        self,
        kind: OperationKind,
        service: str,
        options: DeployOptions,
        artifact_ref: str | None = None,
    ) -> OperationContext:
        if not service or not service.strip():
            raise ValueError("service name must be non-empty")
        service = service.strip()

        record = await self._history.get_service(service)
        cluster = (
            record.cluster if record is not None
            else options.cluster or self._settings.default_cluster
        )
        return OperationContext(
            kind=kind,
            service=service,
            actor=options.actor,
            cluster=cluster,
            artifact_ref=artifact_ref,
            scan=options.scan,
            timeout_seconds=options.timeout_seconds or self._settings.change_timeout_seconds,
            scan_timeout_seconds=(
                options.scan_timeout_seconds or self._settings.scan_timeout_seconds
            ),
            correlation_id=options.correlation_id,
        )

    async def _execute(
        self,
        context: OperationContext,
        cancellation: CancellationToken | None,
        body: OperationBody,
        precondition: OperationStep | None = None,
    ) -> OperationResult:
        lock_key = service_lock_key(context.service)
        token = await self._lock_service.acquire(
            lock_key, ttl_seconds=self._settings.lock_ttl_seconds
        )
        DISTRIBUTED_LOCK_OPERATIONS.labels(
            operation="acquire", result="success" if token else "failure"
        ).inc()
        if token is None:
            BUSY_REJECTIONS.labels(kind=context.kind.value).inc()
            logger.warning(
                "operation_rejected_busy",
                service=context.service,
                kind=context.kind.value,
                operation_id=context.operation_id,
            )
            return OperationResult.busy(context)

        operation = DeploymentOperation(id=context.operation_id, context=context)
        loop = asyncio.get_running_loop()
        started = loop.time()
        OPERATIONS_IN_FLIGHT.inc()
        heartbeat = asyncio.create_task(self._hold_lock(lock_key, token))

        try:
            with structlog.contextvars.bound_contextvars(
                operation_id=operation.id,
                service=context.service,
                operation_kind=context.kind.value,
            ), get_tracer().start_as_current_span(f"controller.{context.kind.value}") as span:
                span.set_attribute("deployctl.service", context.service)
                span.set_attribute("deployctl.operation_id", operation.id)

                try:
                    if precondition is not None:
                        await precondition(operation)

                    operation.start()
                    await self._emit(operation)
                    logger.info("operation_started", actor=context.actor)

                    await body(operation, cancellation)
                except DeploymentControlError as e:
                    operation.fail(e.kind, e.reason, preview_id=e.preview_id)
                    logger.warning(
                        "operation_failed",
                        error_kind=e.kind.value,
                        reason=e.reason,
                        last_completed_stage=operation.last_completed_stage.value,
                        preview_id=operation.preview_id,
                    )
                except Exception as e:
                    if operation.is_terminal:
                        raise
                    kind, reason = self._classify_unexpected(operation, e)
                    operation.fail(kind, reason)
                    logger.exception(
                        "operation_failed_unexpectedly",
                        error_kind=kind.value,
                        last_completed_stage=operation.last_completed_stage.value,
                        preview_id=operation.preview_id,
                    )
                else:
                    logger.info(
                        "operation_succeeded",
                        sequence=operation.revision.sequence if operation.revision else None,
                        artifact_ref=operation.context.artifact_ref,
                    )

                await self._emit(operation)
                span.set_attribute("deployctl.stage", operation.stage.value)
        except Exception:
            logger.exception("operation_crashed", operation_id=operation.id)
            raise
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat
            await self._release(lock_key, token)
            OPERATIONS_IN_FLIGHT.dec()
            OPERATION_DURATION.labels(kind=context.kind.value).observe(loop.time() - started)

        result = operation.to_result()
        OPERATIONS_TOTAL.labels(
            kind=context.kind.value,
            outcome=result.outcome.value,
            error_kind=result.error_kind.value if result.error_kind else "",
        ).inc()
        return result

    @staticmethod
    def _classify_unexpected(
        operation: DeploymentOperation, error: Exception
    ) -> tuple[ErrorKind, str]:
        """Map an unclassified collaborator error onto the stage it interrupted."""
        detail = f"{type(error).__name__}: {error}"
        stage = operation.stage
        if stage == OperationStage.SCANNING:
            return ErrorKind.SCAN_REJECTED, f"Scan could not complete: {detail}"
        if stage == OperationStage.APPLYING:
            return ErrorKind.APPLY_REJECTED, (
                f"Apply of preview {operation.preview_id or 'n/a'} was interrupted: {detail}. "
                f"The backend may be running {operation.context.artifact_ref} without a "
                "revision record; reconcile it manually"
            )
        return ErrorKind.PREVIEW_REJECTED, f"Operation could not reach apply: {detail}"

    # ------------------------------------------------------------------
    # Lock upkeep
    # ------------------------------------------------------------------

    async def _hold_lock(self, lock_key: str, token: str) -> None:
        """Extend the lock a few times per TTL window until cancelled."""
        ttl = self._settings.lock_ttl_seconds
        interval = ttl / LOCK_EXTENSIONS_PER_TTL
        while True:
            await asyncio.sleep(interval)
            try:
                extended = await self._lock_service.extend(lock_key, token, ttl_seconds=ttl)
            except Exception as e:  # noqa: BLE001
                logger.warning("lock_extend_error", lock_key=lock_key, error=str(e))
                extended = False
            DISTRIBUTED_LOCK_OPERATIONS.labels(
                operation="extend", result="success" if extended else "failure"
            ).inc()
            if not extended:
                logger.warning("lock_extend_failed", lock_key=lock_key)

    async def _release(self, lock_key: str, token: str) -> None:
        try:
            released = await self._lock_service.release(lock_key, token)
        except Exception as e:  # noqa: BLE001
            # The TTL frees the key if the release itself cannot reach the lock store.
            logger.warning("lock_release_error", lock_key=lock_key, error=str(e))
            released = False
        DISTRIBUTED_LOCK_OPERATIONS.labels(
            operation="release", result="success" if released else "failure"
        ).inc()

    # ------------------------------------------------------------------
    # Operation bodies
    # ------------------------------------------------------------------

    async def _run_deploy(
        self, operation: DeploymentOperation, cancellation: CancellationToken | None
    ) -> None:
        context = operation.context
        assert context.artifact_ref is not None

        if context.scan:
            await self._scan(operation)

        await self._apply_change(operation, cancellation)
        revision = await self._history.append(
            context.service,
            context.artifact_ref,
            RevisionOutcome.SUCCEEDED,
            cluster=context.cluster,
            operation_id=operation.id,
            actor=context.actor,
        )
        operation.succeed(revision)

    async def _resolve_rollback(self, operation: DeploymentOperation) -> None:
        """Check rollback preconditions and bind the target before ``Started``."""
        context = operation.context
        healthy = await self._history.count_healthy(context.service)
        if healthy < 2:
            raise InsufficientHistoryError(
                f"Service {context.service} has {healthy} successful revision(s); "
                "rollback needs at least 2"
            )

        record = await self._history.get_service(context.service)
        active_sequence = record.active_sequence if record is not None else None
        recent = await self._history.list_recent(
            context.service, limit=self._settings.history_depth
        )
        target = resolve_rollback_target(recent, active_sequence)
        rollback_from = active_sequence if active_sequence is not None else recent[0].sequence
        operation.target(target.artifact_ref, rollback_from=rollback_from)
        logger.info(
            "rollback_target_resolved",
            target_sequence=target.sequence,
            target_artifact_ref=target.artifact_ref,
            rollback_from=rollback_from,
        )

    async def _run_rollback(
        self, operation: DeploymentOperation, cancellation: CancellationToken | None
    ) -> None:
        context = operation.context
        assert context.artifact_ref is not None

        if context.scan:
            await self._scan(operation)

        await self._apply_change(operation, cancellation)
        revision = await self._history.append(
            context.service,
            context.artifact_ref,
            RevisionOutcome.ROLLED_BACK_FROM,
            cluster=context.cluster,
            rolled_back_from=context.rollback_from,
            operation_id=operation.id,
            actor=context.actor,
        )
        operation.succeed(revision)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _scan(self, operation: DeploymentOperation) -> None:
        context = operation.context
        assert context.artifact_ref is not None
        operation.start_scan()
        await self._emit(operation)

        if self._scanner is None:
            SCANS_TOTAL.labels(result="error").inc()
            raise ScanRejectedError("Scan requested but no vulnerability scanner is configured")

        try:
            report = await asyncio.wait_for(
                self._scanner.scan(context.artifact_ref),
                timeout=context.scan_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            SCANS_TOTAL.labels(result="error").inc()
            raise ScanRejectedError(
                f"Scan of {context.artifact_ref} did not finish within "
                f"{context.scan_timeout_seconds:g}s"
            ) from e
        except Exception as e:
            SCANS_TOTAL.labels(result="error").inc()
            raise ScanRejectedError(f"Scan of {context.artifact_ref} failed: {e}") from e

        threshold = self._settings.scan_threshold
        logger.info(
            "scan_completed",
            artifact_ref=context.artifact_ref,
            high=report.high_count,
            critical=report.critical_count,
            threshold=threshold,
            report_ref=report.report_ref,
        )
        if report.exceeds(threshold):
            SCANS_TOTAL.labels(result="rejected").inc()
            raise ScanRejectedError(
                f"{report.blocking_count} high/critical vulnerabilities "
                f"(high={report.high_count}, critical={report.critical_count}) "
                f"exceed threshold {threshold}; report {report.report_ref or 'n/a'}"
            )
        SCANS_TOTAL.labels(result="passed").inc()

    async def _apply_change(
        self, operation: DeploymentOperation, cancellation: CancellationToken | None
    ) -> None:
        context = operation.context
        assert context.artifact_ref is not None
        if cancellation is not None and cancellation.cancelled:
            raise OperationCancelledError(cancellation.reason)

        operation.start_preview()

        async def on_phase(change: ChangeOperation) -> None:
            if change.phase == ChangePhase.PREVIEW_READY:
                operation.preview_ready(change.preview_id)
            elif change.phase == ChangePhase.APPLYING:
                operation.start_apply()
            await self._emit(operation)

        result = await self._coordinator.preview_and_apply(
            context.service,
            context.artifact_ref,
            timeout=context.timeout_seconds,
            cancellation=cancellation,
            on_phase=on_phase,
        )
        if not result.succeeded:
            assert result.failure is not None
            error_class = CHANGE_FAILURE_ERRORS[result.failure]
            raise error_class(result.reason, preview_id=result.preview_id)

    # ------------------------------------------------------------------
    # Event delivery
    # ------------------------------------------------------------------

    async def _emit(self, operation: DeploymentOperation) -> None:
        """Record and deliver pending events. Delivery failures never fail the operation."""
        for event in operation.collect_events():
            assert isinstance(event, LifecycleEvent)
            if self._event_log is not None:
                try:
                    await self._event_log.record(event)
                except Exception as e:  # noqa: BLE001
                    logger.warning(
                        "event_log_write_failed", event_type=event.event_type, error=str(e)
                    )

            try:
                await asyncio.wait_for(
                    self._sink.publish(event),
                    timeout=self._settings.notification_timeout_seconds,
                )
            except Exception as e:  # noqa: BLE001
                NOTIFICATION_FAILURES.labels(event_type=event.event_type).inc()
                logger.warning(
                    "notification_failed",
                    event_type=event.event_type,
                    operation_id=event.operation_id,
                    error=str(e) or type(e).__name__,
                )
