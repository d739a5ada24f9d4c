"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from deployctl.config import (
    AuthSettings,
    ControllerSettings,
    DatabaseSettings,
    Environment,
    Settings,
)
from deployctl.domain.services.change_coordinator import ChangeCoordinator
from deployctl.domain.services.deployment_controller import DeploymentController
from deployctl.infrastructure.auth.jwt_handler import JWTHandler
from deployctl.infrastructure.backend.simulated import (
    SimulatedOrchestrationBackend,
    SimulatedVulnerabilityScanner,
)
from deployctl.infrastructure.locking.distributed_lock import InProcessDistributedLock
from deployctl.infrastructure.messaging.notification_sink import InMemoryNotificationSink
from deployctl.infrastructure.persistence.database import DatabaseManager
from deployctl.infrastructure.persistence.repositories import (
    SqlLifecycleEventLog,
    SqlRevisionHistoryStore,
)


@pytest.fixture
def database_settings(tmp_path: Path) -> DatabaseSettings:
    return DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'deployctl.db'}")


@pytest.fixture
def controller_settings() -> ControllerSettings:
    return ControllerSettings(
        scan_threshold=5,
        scan_timeout_seconds=1.0,
        change_timeout_seconds=1.0,
        poll_interval_seconds=0.01,
        lock_ttl_seconds=60,
        notification_timeout_seconds=0.2,
    )


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(
        secret_key="test-secret-key",
        algorithm="HS256",
        access_token_expire_minutes=30,
    )


@pytest.fixture
def settings(
    database_settings: DatabaseSettings,
    controller_settings: ControllerSettings,
    auth_settings: AuthSettings,
) -> Settings:
    return Settings(
        environment=Environment.TESTING,
        debug=True,
        database=database_settings,
        controller=controller_settings,
        auth=auth_settings,
    )


@pytest.fixture
def jwt_handler(auth_settings: AuthSettings) -> JWTHandler:
    return JWTHandler(auth_settings)


@pytest_asyncio.fixture
async def database(database_settings: DatabaseSettings) -> AsyncGenerator[DatabaseManager, None]:
    manager = DatabaseManager(database_settings)
    await manager.initialize(create_schema=True)
    yield manager
    await manager.close()


@pytest.fixture
def history_store(database: DatabaseManager) -> SqlRevisionHistoryStore:
    return SqlRevisionHistoryStore(database)


@pytest.fixture
def event_log(database: DatabaseManager) -> SqlLifecycleEventLog:
    return SqlLifecycleEventLog(database)


@pytest.fixture
def backend() -> SimulatedOrchestrationBackend:
    return SimulatedOrchestrationBackend()


@pytest.fixture
def scanner() -> SimulatedVulnerabilityScanner:
    return SimulatedVulnerabilityScanner()


@pytest.fixture
def lock_service() -> InProcessDistributedLock:
    return InProcessDistributedLock()


@pytest.fixture
def notification_sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def coordinator(
    backend: SimulatedOrchestrationBackend, controller_settings: ControllerSettings
) -> ChangeCoordinator:
    return ChangeCoordinator(
        backend,
        poll_interval_seconds=controller_settings.poll_interval_seconds,
        default_timeout_seconds=controller_settings.change_timeout_seconds,
    )


@pytest.fixture
def controller(
    history_store: SqlRevisionHistoryStore,
    event_log: SqlLifecycleEventLog,
    coordinator: ChangeCoordinator,
    scanner: SimulatedVulnerabilityScanner,
    lock_service: InProcessDistributedLock,
    notification_sink: InMemoryNotificationSink,
    controller_settings: ControllerSettings,
) -> DeploymentController:
    return DeploymentController(
        history=history_store,
        coordinator=coordinator,
        notification_sink=notification_sink,
        lock_service=lock_service,
        scanner=scanner,
        event_log=event_log,
        settings=controller_settings,
    )
