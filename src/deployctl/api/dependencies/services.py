"""Service dependencies for FastAPI dependency injection."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import Request

from deployctl.config import get_settings, Settings
from deployctl.domain.ports.repositories import LifecycleEventLog, RevisionHistoryStore
from deployctl.domain.ports.services import (
    DistributedLock,
    NotificationSink,
    OrchestrationBackend,
    VulnerabilityScanner,
)
from deployctl.domain.services.change_coordinator import ChangeCoordinator
from deployctl.domain.services.deployment_controller import DeploymentController
from deployctl.infrastructure.backend.simulated import (
    SimulatedOrchestrationBackend,
    SimulatedVulnerabilityScanner,
)
from deployctl.infrastructure.locking.distributed_lock import create_lock
from deployctl.infrastructure.messaging.notification_sink import (
    InMemoryNotificationSink,
    KafkaNotificationSink,
)
from deployctl.infrastructure.persistence.database import DatabaseManager
from deployctl.infrastructure.persistence.repositories import (
    SqlLifecycleEventLog,
    SqlRevisionHistoryStore,
)


logger = structlog.get_logger(__name__)


class ServiceContainer:
    """Composition root wiring the controller to its adapters.

    Every collaborator may be injected; the defaults are the SQL stores,
    the lock backend selected in settings, the simulated backend and
    scanner, and the in-memory sink (or Kafka when a producer is given).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        backend: OrchestrationBackend | None = None,
        scanner: VulnerabilityScanner | None = None,
        notification_sink: NotificationSink | None = None,
        lock_service: DistributedLock | None = None,
        kafka_producer: Any | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._database = DatabaseManager(self._settings.database)
        self._history: RevisionHistoryStore = SqlRevisionHistoryStore(self._database)
        self._event_log: LifecycleEventLog = SqlLifecycleEventLog(self._database)
        self._backend = backend or SimulatedOrchestrationBackend()
        self._scanner = scanner or SimulatedVulnerabilityScanner()
        self._lock_service = lock_service or create_lock(self._settings.redis)

        if notification_sink is not None:
            self._notification_sink = notification_sink
        elif kafka_producer is not None and self._settings.kafka.enabled:
            self._notification_sink = KafkaNotificationSink(
                kafka_producer, topic_prefix=self._settings.kafka.topic_prefix
            )
        else:
            self._notification_sink = InMemoryNotificationSink(
                max_events=self._settings.controller.notification_buffer_size
            )

        controller_settings = self._settings.controller
        self._coordinator = ChangeCoordinator(
            self._backend,
            poll_interval_seconds=controller_settings.poll_interval_seconds,
            default_timeout_seconds=controller_settings.change_timeout_seconds,
        )
        self._controller = DeploymentController(
            history=self._history,
            coordinator=self._coordinator,
            notification_sink=self._notification_sink,
            lock_service=self._lock_service,
            scanner=self._scanner,
            event_log=self._event_log,
            settings=controller_settings,
        )
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            return
        await self._database.initialize(create_schema=True)
        self._initialized = True
        logger.info(
            "service_container_initialized",
            lock_backend=type(self._lock_service).__name__,
            notification_sink=type(self._notification_sink).__name__,
        )

    async def close(self) -> None:
        if self._initialized:
            await self._database.close()
            self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def database(self) -> DatabaseManager:
        return self._database

    @property
    def controller(self) -> DeploymentController:
        return self._controller

    @property
    def history(self) -> RevisionHistoryStore:
        return self._history

    @property
    def backend(self) -> OrchestrationBackend:
        return self._backend

    @property
    def scanner(self) -> VulnerabilityScanner:
        return self._scanner

    @property
    def notification_sink(self) -> NotificationSink:
        return self._notification_sink

    @property
    def lock_service(self) -> DistributedLock:
        return self._lock_service


def get_service_container(request: Request) -> ServiceContainer:
    container: ServiceContainer = request.app.state.container
    return container


def get_controller(request: Request) -> DeploymentController:
    return get_service_container(request).controller
