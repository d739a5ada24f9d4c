"""Unit tests for the deployment controller."""

from __future__ import annotations

import asyncio

import pytest

from deployctl.config import ControllerSettings
from deployctl.domain.events.lifecycle_events import (
    LifecycleEvent,
    LifecycleEventKind,
    OperationFailed,
    OperationSucceeded,
    StageProgress,
)
from deployctl.domain.models.cancellation import CancellationToken
from deployctl.domain.models.operation import (
    DeployOptions,
    ErrorKind,
    OperationKind,
    OperationOutcome,
    OperationStage,
)
from deployctl.domain.models.revision import RevisionOutcome
from deployctl.domain.services.change_coordinator import ChangeCoordinator
from deployctl.domain.services.deployment_controller import (
    DeploymentController,
    service_lock_key,
)
from deployctl.infrastructure.backend.simulated import (
    SimulatedOrchestrationBackend,
    SimulatedVulnerabilityScanner,
)
from deployctl.infrastructure.locking.distributed_lock import InProcessDistributedLock
from deployctl.infrastructure.messaging.notification_sink import InMemoryNotificationSink
from deployctl.infrastructure.persistence.repositories import (
    SqlLifecycleEventLog,
    SqlRevisionHistoryStore,
)


SERVICE = "checkout"


def stages(events: list[LifecycleEvent]) -> list[str]:
    return [e.stage if isinstance(e, StageProgress) else e.kind.value for e in events]


async def wait_for_lock(lock: InProcessDistributedLock, service: str) -> None:
    for _ in range(400):
        if await lock.is_locked(service_lock_key(service)):
            return
        await asyncio.sleep(0.005)
    raise AssertionError("lock never taken")


class FailingSink(InMemoryNotificationSink):
    async def publish(self, event: LifecycleEvent) -> None:
        raise ConnectionError("chat webhook unreachable")


class SlowSink(InMemoryNotificationSink):
    async def publish(self, event: LifecycleEvent) -> None:
        await asyncio.sleep(10)


class TestDeploy:
    @pytest.mark.asyncio
    async def test_successful_deploy(
        self,
        controller: DeploymentController,
        notification_sink: InMemoryNotificationSink,
        backend: SimulatedOrchestrationBackend,
    ) -> None:
        result = await controller.deploy(
            SERVICE, "registry/checkout:1", DeployOptions(actor="alice", cluster="prod")
        )

        assert result.succeeded
        assert result.kind == OperationKind.DEPLOY
        assert result.revision is not None
        assert result.revision.sequence == 1
        assert result.revision.actor == "alice"
        assert result.revision.operation_id == result.operation_id
        assert result.last_completed_stage == OperationStage.APPLYING
        assert backend.live_artifact(SERVICE) == "registry/checkout:1"

        events = notification_sink.events_for(result.operation_id)
        assert stages(events) == ["started", "preview-ready", "apply-start", "succeeded"]
        assert all(e.actor == "alice" for e in events)
        assert isinstance(events[-1], OperationSucceeded)
        assert events[-1].sequence == 1

        status = await controller.status(SERVICE)
        assert status.cluster == "prod"
        assert status.active_sequence == 1
        assert status.active_artifact_ref == "registry/checkout:1"
        assert not status.operation_in_progress

    @pytest.mark.asyncio
    async def test_sequences_are_gap_free(self, controller: DeploymentController) -> None:
        for i in range(1, 5):
            result = await controller.deploy(SERVICE, f"img:{i}")
            assert result.revision is not None
            assert result.revision.sequence == i

        revisions = await controller.revisions(SERVICE)
        assert [r.sequence for r in revisions] == [4, 3, 2, 1]

    @pytest.mark.asyncio
    async def test_failed_deploy_consumes_no_sequence(
        self, controller: DeploymentController, backend: SimulatedOrchestrationBackend
    ) -> None:
        await controller.deploy(SERVICE, "img:1")
        backend.faults.apply_errors["img:2"] = "quota exceeded"
        failed = await controller.deploy(SERVICE, "img:2")
        assert failed.error_kind == ErrorKind.APPLY_REJECTED

        result = await controller.deploy(SERVICE, "img:3")
        assert result.revision is not None
        assert result.revision.sequence == 2

    @pytest.mark.asyncio
    async def test_cluster_is_fixed_at_first_deploy(self, controller: DeploymentController) -> None:
        await controller.deploy(SERVICE, "img:1", DeployOptions(cluster="blue"))
        await controller.deploy(SERVICE, "img:2", DeployOptions(cluster="green"))
        assert (await controller.status(SERVICE)).cluster == "blue"

    @pytest.mark.asyncio
    async def test_redeploying_live_artifact(
        self,
        controller: DeploymentController,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        await controller.deploy(SERVICE, "img:1")
        result = await controller.deploy(SERVICE, "img:1")

        assert result.error_kind == ErrorKind.PREVIEW_REJECTED
        assert result.reason == "no changes"
        assert result.last_completed_stage == OperationStage.PREVIEWING
        assert (await controller.status(SERVICE)).revision_count == 1
        terminal = notification_sink.events_for(result.operation_id)[-1]
        assert isinstance(terminal, OperationFailed)
        assert terminal.error_kind == "preview-rejected"

    @pytest.mark.asyncio
    async def test_invalid_artifact_ref_raises_before_locking(
        self, controller: DeploymentController, notification_sink: InMemoryNotificationSink
    ) -> None:
        with pytest.raises(ValueError):
            await controller.deploy(SERVICE, "img 1")
        with pytest.raises(ValueError):
            await controller.deploy("  ", "img:1")
        assert notification_sink.published_events == []

    @pytest.mark.asyncio
    async def test_timeouts_carry_preview_id(
        self, controller: DeploymentController, backend: SimulatedOrchestrationBackend
    ) -> None:
        backend.faults.hanging_stabilizations.add("img:slow")
        result = await controller.deploy(
            SERVICE, "img:slow", DeployOptions(timeout_seconds=0.05)
        )
        assert result.error_kind == ErrorKind.APPLY_TIMEOUT
        assert result.preview_id is not None
        assert result.preview_id in backend.applied
        assert await controller.revisions(SERVICE) == []


class TestScan:
    @pytest.mark.asyncio
    async def test_scan_rejection(
        self,
        controller: DeploymentController,
        scanner: SimulatedVulnerabilityScanner,
        backend: SimulatedOrchestrationBackend,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        scanner.set_findings("img:vuln", critical=7)
        result = await controller.deploy(SERVICE, "img:vuln", DeployOptions(scan=True))

        assert result.error_kind == ErrorKind.SCAN_REJECTED
        assert result.last_completed_stage == OperationStage.SCANNING
        assert backend.preview_count == 0
        assert await controller.revisions(SERVICE) == []

        events = notification_sink.events_for(result.operation_id)
        assert stages(events) == ["started", "scan-start", "failed"]
        assert events[-1].last_completed_stage == "scanning"

    @pytest.mark.asyncio
    async def test_findings_at_threshold_pass(
        self, controller: DeploymentController, scanner: SimulatedVulnerabilityScanner
    ) -> None:
        scanner.set_findings("img:ok", high=3, critical=2)
        result = await controller.deploy(SERVICE, "img:ok", DeployOptions(scan=True))
        assert result.succeeded
        assert scanner.scanned == ["img:ok"]

    @pytest.mark.asyncio
    async def test_scanner_error_fails_closed(
        self, controller: DeploymentController, scanner: SimulatedVulnerabilityScanner
    ) -> None:
        scanner.set_error("img:1", "registry unauthorized")
        result = await controller.deploy(SERVICE, "img:1", DeployOptions(scan=True))
        assert result.error_kind == ErrorKind.SCAN_REJECTED
        assert "registry unauthorized" in result.reason

    @pytest.mark.asyncio
    async def test_scanner_timeout_fails_closed(
        self,
        controller: DeploymentController,
        history_store: SqlRevisionHistoryStore,
        coordinator: ChangeCoordinator,
        lock_service: InProcessDistributedLock,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        slow = DeploymentController(
            history=history_store,
            coordinator=coordinator,
            notification_sink=notification_sink,
            lock_service=lock_service,
            scanner=SimulatedVulnerabilityScanner(latency_seconds=5),
        )
        result = await slow.deploy(
            SERVICE, "img:1", DeployOptions(scan=True, scan_timeout_seconds=0.05)
        )
        assert result.error_kind == ErrorKind.SCAN_REJECTED

    @pytest.mark.asyncio
    async def test_no_scanner_configured(
        self,
        history_store: SqlRevisionHistoryStore,
        coordinator: ChangeCoordinator,
        lock_service: InProcessDistributedLock,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        controller = DeploymentController(
            history=history_store,
            coordinator=coordinator,
            notification_sink=notification_sink,
            lock_service=lock_service,
        )
        result = await controller.deploy(SERVICE, "img:1", DeployOptions(scan=True))
        assert result.error_kind == ErrorKind.SCAN_REJECTED

    @pytest.mark.asyncio
    async def test_scan_skipped_unless_requested(
        self, controller: DeploymentController, scanner: SimulatedVulnerabilityScanner
    ) -> None:
        scanner.set_findings("img:vuln", critical=50)
        result = await controller.deploy(SERVICE, "img:vuln")
        assert result.succeeded
        assert scanner.scanned == []


class TestRollback:
    @pytest.mark.asyncio
    async def test_rollback_to_previous_revision(
        self,
        controller: DeploymentController,
        backend: SimulatedOrchestrationBackend,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        await controller.deploy(SERVICE, "img:a")
        await controller.deploy(SERVICE, "img:b")

        result = await controller.rollback(SERVICE, DeployOptions(actor="oncall"))

        assert result.succeeded
        assert result.kind == OperationKind.ROLLBACK
        assert result.artifact_ref == "img:a"
        revision = result.revision
        assert revision is not None
        assert revision.sequence == 3
        assert revision.artifact_ref == "img:a"
        assert revision.outcome == RevisionOutcome.ROLLED_BACK_FROM
        assert revision.rolled_back_from == 2
        assert backend.live_artifact(SERVICE) == "img:a"

        terminal = notification_sink.events_for(result.operation_id)[-1]
        assert isinstance(terminal, OperationSucceeded)
        assert terminal.rolled_back_from == 2
        assert terminal.operation_kind == "rollback"

    @pytest.mark.asyncio
    async def test_insufficient_history(
        self,
        controller: DeploymentController,
        backend: SimulatedOrchestrationBackend,
        lock_service: InProcessDistributedLock,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        await controller.deploy(SERVICE, "img:a")
        previews_before = backend.preview_count

        result = await controller.rollback(SERVICE)

        assert result.error_kind == ErrorKind.INSUFFICIENT_HISTORY
        assert result.last_completed_stage == OperationStage.IDLE
        assert backend.preview_count == previews_before
        # Rejected before Started: only the terminal record is published.
        assert stages(notification_sink.events_for(result.operation_id)) == ["failed"]
        assert not await lock_service.is_locked(service_lock_key(SERVICE))

    @pytest.mark.asyncio
    async def test_rollback_of_unknown_service(self, controller: DeploymentController) -> None:
        result = await controller.rollback("ghost")
        assert result.error_kind == ErrorKind.INSUFFICIENT_HISTORY

    @pytest.mark.asyncio
    async def test_never_targets_failed_revision(
        self,
        controller: DeploymentController,
        history_store: SqlRevisionHistoryStore,
    ) -> None:
        await controller.deploy(SERVICE, "img:a")
        await history_store.append(SERVICE, "img:broken", RevisionOutcome.FAILED, cluster="default")
        await controller.deploy(SERVICE, "img:c")

        result = await controller.rollback(SERVICE)
        assert result.succeeded
        assert result.artifact_ref == "img:a"
        assert result.revision is not None
        assert result.revision.rolled_back_from == 3

    @pytest.mark.asyncio
    async def test_no_rollback_target(
        self,
        controller: DeploymentController,
        history_store: SqlRevisionHistoryStore,
        backend: SimulatedOrchestrationBackend,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        # Two healthy entries, but the older one is itself a rollback record.
        await history_store.append(
            SERVICE, "img:a", RevisionOutcome.ROLLED_BACK_FROM, cluster="default"
        )
        await controller.deploy(SERVICE, "img:b")
        previews_before = backend.preview_count

        result = await controller.rollback(SERVICE)

        assert result.error_kind == ErrorKind.NO_ROLLBACK_TARGET
        assert backend.preview_count == previews_before
        assert stages(notification_sink.events_for(result.operation_id)) == ["failed"]

    @pytest.mark.asyncio
    async def test_rolling_back_a_rollback(self, controller: DeploymentController) -> None:
        await controller.deploy(SERVICE, "img:a")
        await controller.deploy(SERVICE, "img:b")
        await controller.rollback(SERVICE)

        result = await controller.rollback(SERVICE)
        assert result.succeeded
        assert result.artifact_ref == "img:b"
        assert result.revision is not None
        assert result.revision.rolled_back_from == 3

    @pytest.mark.asyncio
    async def test_rollback_scans_when_requested(
        self, controller: DeploymentController, scanner: SimulatedVulnerabilityScanner
    ) -> None:
        await controller.deploy(SERVICE, "img:a")
        await controller.deploy(SERVICE, "img:b")
        scanner.set_findings("img:a", high=9)

        result = await controller.rollback(SERVICE, DeployOptions(scan=True))
        assert result.error_kind == ErrorKind.SCAN_REJECTED
        assert scanner.scanned == ["img:a"]
        assert (await controller.status(SERVICE)).active_artifact_ref == "img:b"


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_second_operation_is_busy(
        self,
        controller: DeploymentController,
        backend: SimulatedOrchestrationBackend,
        lock_service: InProcessDistributedLock,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        backend.faults.hanging_previews.add("img:slow")
        token = CancellationToken()
        first = asyncio.create_task(controller.deploy(
            SERVICE, "img:slow", DeployOptions(timeout_seconds=5, cancellation=token)
        ))
        await wait_for_lock(lock_service, SERVICE)

        loop = asyncio.get_running_loop()
        started = loop.time()
        busy = await controller.deploy(SERVICE, "img:other")
        assert loop.time() - started < 0.5
        assert busy.error_kind == ErrorKind.BUSY
        assert notification_sink.events_for(busy.operation_id) == []

        rollback_busy = await controller.rollback(SERVICE)
        assert rollback_busy.error_kind == ErrorKind.BUSY

        status = await controller.status(SERVICE)
        assert status.operation_in_progress

        token.cancel("test finished")
        cancelled = await first
        assert cancelled.outcome == OperationOutcome.CANCELLED
        assert cancelled.error_kind == ErrorKind.CANCELLED
        assert not await lock_service.is_locked(service_lock_key(SERVICE))

    @pytest.mark.asyncio
    async def test_exactly_one_of_two_concurrent_deploys_runs(
        self,
        history_store: SqlRevisionHistoryStore,
        lock_service: InProcessDistributedLock,
        notification_sink: InMemoryNotificationSink,
        controller_settings: ControllerSettings,
    ) -> None:
        backend = SimulatedOrchestrationBackend(latency_seconds=0.05)
        controller = DeploymentController(
            history=history_store,
            coordinator=ChangeCoordinator(backend, poll_interval_seconds=0.01),
            notification_sink=notification_sink,
            lock_service=lock_service,
            settings=controller_settings,
        )
        results = await asyncio.gather(
            controller.deploy(SERVICE, "img:a"),
            controller.deploy(SERVICE, "img:b"),
        )
        outcomes = sorted(r.error_kind.value if r.error_kind else "ok" for r in results)
        assert outcomes == ["busy", "ok"]
        assert len(await controller.revisions(SERVICE)) == 1

    @pytest.mark.asyncio
    async def test_different_services_run_in_parallel(
        self, controller: DeploymentController
    ) -> None:
        results = await asyncio.gather(
            controller.deploy("svc-a", "img:a"),
            controller.deploy("svc-b", "img:b"),
        )
        assert all(r.succeeded for r in results)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_apply_records_nothing(
        self,
        controller: DeploymentController,
        backend: SimulatedOrchestrationBackend,
        lock_service: InProcessDistributedLock,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        backend.faults.hanging_previews.add("img:a")
        token = CancellationToken()
        task = asyncio.create_task(controller.deploy(
            SERVICE, "img:a", DeployOptions(timeout_seconds=5, cancellation=token)
        ))
        await wait_for_lock(lock_service, SERVICE)
        token.cancel("operator abort")
        result = await task

        assert result.outcome == OperationOutcome.CANCELLED
        assert result.reason == "operator abort"
        assert await controller.revisions(SERVICE) == []
        assert backend.applied == []
        terminal = notification_sink.events_for(result.operation_id)[-1]
        assert terminal.kind == LifecycleEventKind.FAILED
        assert terminal.outcome == "cancelled"
        assert terminal.error_kind == "cancelled"

    @pytest.mark.asyncio
    async def test_already_cancelled_token(
        self, controller: DeploymentController, backend: SimulatedOrchestrationBackend
    ) -> None:
        token = CancellationToken()
        token.cancel()
        result = await controller.deploy(SERVICE, "img:a", DeployOptions(cancellation=token))
        assert result.error_kind == ErrorKind.CANCELLED
        assert backend.preview_count == 0

    @pytest.mark.asyncio
    async def test_cancel_after_apply_records_what_went_live(
        self,
        controller: DeploymentController,
        backend: SimulatedOrchestrationBackend,
    ) -> None:
        await controller.deploy(SERVICE, "img:a")
        backend.faults.hanging_stabilizations.add("img:b")
        token = CancellationToken()
        task = asyncio.create_task(controller.deploy(
            SERVICE, "img:b", DeployOptions(timeout_seconds=5, cancellation=token)
        ))
        for _ in range(400):
            if len(backend.applied) == 2:
                break
            await asyncio.sleep(0.005)
        token.cancel("operator abort")
        await asyncio.sleep(0.05)
        assert not task.done()

        backend.faults.hanging_stabilizations.discard("img:b")
        result = await task

        assert result.succeeded
        assert result.revision is not None
        assert result.revision.sequence == 2
        status = await controller.status(SERVICE)
        assert status.active_artifact_ref == "img:b"
        assert backend.live_artifact(SERVICE) == "img:b"


class TestEventDelivery:
    @pytest.mark.asyncio
    async def test_sink_failures_do_not_fail_operations(
        self,
        history_store: SqlRevisionHistoryStore,
        coordinator: ChangeCoordinator,
        lock_service: InProcessDistributedLock,
        controller_settings: ControllerSettings,
    ) -> None:
        for sink in (FailingSink(), SlowSink()):
            controller = DeploymentController(
                history=history_store,
                coordinator=coordinator,
                notification_sink=sink,
                lock_service=lock_service,
                settings=controller_settings,
            )
            result = await controller.deploy(SERVICE, f"img:{type(sink).__name__}")
            assert result.succeeded

    @pytest.mark.asyncio
    async def test_events_are_audited(
        self,
        controller: DeploymentController,
        event_log: SqlLifecycleEventLog,
    ) -> None:
        result = await controller.deploy(SERVICE, "img:a")
        recorded = await event_log.list_for_operation(result.operation_id)
        assert stages(recorded) == ["started", "preview-ready", "apply-start", "succeeded"]

        latest = await controller.events(SERVICE, limit=1)
        assert latest[0].kind == LifecycleEventKind.SUCCEEDED

    @pytest.mark.asyncio
    async def test_every_operation_ends_with_one_terminal_event(
        self,
        controller: DeploymentController,
        backend: SimulatedOrchestrationBackend,
        notification_sink: InMemoryNotificationSink,
    ) -> None:
        backend.faults.preview_rejections["img:bad"] = "invalid"
        results = [
            await controller.deploy(SERVICE, "img:a"),
            await controller.deploy(SERVICE, "img:bad"),
            await controller.deploy(SERVICE, "img:b"),
            await controller.rollback(SERVICE),
        ]
        for result in results:
            events = notification_sink.events_for(result.operation_id)
            assert events[0].kind == LifecycleEventKind.STARTED
            assert sum(e.is_terminal for e in events) == 1
            assert events[-1].is_terminal


class TestUnexpectedErrors:
    @pytest.mark.asyncio
    async def test_history_write_crash_after_apply_is_a_failed_event(
        self,
        controller: DeploymentController,
        history_store: SqlRevisionHistoryStore,
        backend: SimulatedOrchestrationBackend,
        lock_service: InProcessDistributedLock,
        notification_sink: InMemoryNotificationSink,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_append(*args: object, **kwargs: object) -> None:
            raise RuntimeError("disk full")

        monkeypatch.setattr(history_store, "append", broken_append)
        result = await controller.deploy(SERVICE, "img:a")

        assert result.outcome == OperationOutcome.FAILED
        assert result.error_kind == ErrorKind.APPLY_REJECTED
        assert result.last_completed_stage == OperationStage.APPLYING
        assert result.preview_id is not None
        assert result.preview_id in result.reason
        assert "disk full" in result.reason
        assert backend.live_artifact(SERVICE) == "img:a"

        events = notification_sink.events_for(result.operation_id)
        assert stages(events) == ["started", "preview-ready", "apply-start", "failed"]
        terminal = events[-1]
        assert isinstance(terminal, OperationFailed)
        assert terminal.error_kind == "apply-rejected"
        assert terminal.preview_id == result.preview_id
        assert not await lock_service.is_locked(service_lock_key(SERVICE))

    @pytest.mark.asyncio
    async def test_history_read_crash_during_rollback(
        self,
        controller: DeploymentController,
        history_store: SqlRevisionHistoryStore,
        backend: SimulatedOrchestrationBackend,
        lock_service: InProcessDistributedLock,
        notification_sink: InMemoryNotificationSink,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await controller.deploy(SERVICE, "img:a")
        await controller.deploy(SERVICE, "img:b")
        previews_before = backend.preview_count

        async def broken_count(service: str) -> int:
            raise ConnectionError("database unreachable")

        monkeypatch.setattr(history_store, "count_healthy", broken_count)
        result = await controller.rollback(SERVICE)

        assert result.outcome == OperationOutcome.FAILED
        assert result.error_kind == ErrorKind.PREVIEW_REJECTED
        assert "database unreachable" in result.reason
        assert backend.preview_count == previews_before
        assert stages(notification_sink.events_for(result.operation_id)) == ["failed"]
        assert not await lock_service.is_locked(service_lock_key(SERVICE))


class TestLockLifetime:
    @pytest.mark.asyncio
    async def test_lock_is_held_past_its_ttl_while_operation_runs(
        self,
        history_store: SqlRevisionHistoryStore,
        backend: SimulatedOrchestrationBackend,
        lock_service: InProcessDistributedLock,
        notification_sink: InMemoryNotificationSink,
        controller_settings: ControllerSettings,
    ) -> None:
        controller = DeploymentController(
            history=history_store,
            coordinator=ChangeCoordinator(backend, poll_interval_seconds=0.01),
            notification_sink=notification_sink,
            lock_service=lock_service,
            settings=controller_settings.model_copy(update={"lock_ttl_seconds": 1}),
        )
        backend.faults.hanging_previews.add("img:slow")
        token = CancellationToken()
        first = asyncio.create_task(controller.deploy(
            SERVICE, "img:slow", DeployOptions(timeout_seconds=5, cancellation=token)
        ))
        await wait_for_lock(lock_service, SERVICE)

        await asyncio.sleep(1.5)
        second = await controller.deploy(SERVICE, "img:b")
        assert second.error_kind == ErrorKind.BUSY
        assert not first.done()

        token.cancel("test finished")
        result = await first
        assert result.outcome == OperationOutcome.CANCELLED
        assert not await lock_service.is_locked(service_lock_key(SERVICE))
        assert await controller.revisions(SERVICE) == []


class TestStatus:
    @pytest.mark.asyncio
    async def test_unknown_service(self, controller: DeploymentController) -> None:
        status = await controller.status("ghost")
        assert not status.is_deployed
        assert status.revision_count == 0

    @pytest.mark.asyncio
    async def test_services_listing(self, controller: DeploymentController) -> None:
        await controller.deploy("b-svc", "img:1")
        await controller.deploy("a-svc", "img:1")
        assert [s.name for s in await controller.services()] == ["a-svc", "b-svc"]
