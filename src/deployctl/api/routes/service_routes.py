"""Service deployment API routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    status,
)
from fastapi.responses import JSONResponse

from deployctl.api.dependencies.auth import require_permission
from deployctl.api.dependencies.services import get_controller
from deployctl.api.middleware.correlation import get_correlation_id
from deployctl.api.schemas.service_schemas import (
    DeployRequest,
    ErrorResponse,
    LifecycleEventResponse,
    OperationResponse,
    RevisionResponse,
    RollbackRequest,
    ServiceStatusResponse,
)
from deployctl.domain.events.lifecycle_events import LifecycleEvent
from deployctl.domain.models.operation import DeployOptions, ErrorKind, OperationResult
from deployctl.domain.models.revision import Revision, ServiceStatus
from deployctl.domain.models.user import Permission, Principal
from deployctl.domain.services.deployment_controller import DeploymentController


router = APIRouter(prefix="/services", tags=["services"])

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.BUSY: status.HTTP_409_CONFLICT,
    ErrorKind.INSUFFICIENT_HISTORY: status.HTTP_409_CONFLICT,
    ErrorKind.NO_ROLLBACK_TARGET: status.HTTP_409_CONFLICT,
    ErrorKind.CANCELLED: status.HTTP_409_CONFLICT,
    ErrorKind.SCAN_REJECTED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.PREVIEW_REJECTED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.APPLY_REJECTED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PREVIEW_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.APPLY_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}

_EVENT_BASE_FIELDS = set(LifecycleEventResponse.model_fields) | {"service", "correlation_id"}


def _revision_response(revision: Revision) -> RevisionResponse:
    return RevisionResponse(**revision.model_dump())


def _status_response(service_status: ServiceStatus) -> ServiceStatusResponse:
    return ServiceStatusResponse(
        name=service_status.name,
        cluster=service_status.cluster,
        active_sequence=service_status.active_sequence,
        active_artifact_ref=service_status.active_artifact_ref,
        revision_count=service_status.revision_count,
        operation_in_progress=service_status.operation_in_progress,
        last_revision=(
            _revision_response(service_status.last_revision)
            if service_status.last_revision else None
        ),
        updated_at=service_status.updated_at,
    )


def _operation_response(result: OperationResult) -> OperationResponse:
    return OperationResponse(
        operation_id=result.operation_id,
        service=result.service,
        kind=result.kind,
        outcome=result.outcome,
        error_kind=result.error_kind,
        reason=result.reason,
        artifact_ref=result.artifact_ref,
        preview_id=result.preview_id,
        last_completed_stage=result.last_completed_stage,
        revision=_revision_response(result.revision) if result.revision else None,
    )


def _event_response(event: LifecycleEvent) -> LifecycleEventResponse:
    payload = event.model_dump(mode="json")
    return LifecycleEventResponse(
        **{k: v for k, v in payload.items() if k in LifecycleEventResponse.model_fields},
        details={k: v for k, v in payload.items() if k not in _EVENT_BASE_FIELDS},
    )


def _operation_outcome(result: OperationResult) -> OperationResponse | JSONResponse:
    if result.succeeded:
        return _operation_response(result)
    assert result.error_kind is not None
    body = ErrorResponse(
        detail=result.reason,
        error_kind=result.error_kind,
        operation=_operation_response(result),
    )
    return JSONResponse(
        status_code=ERROR_STATUS_CODES[result.error_kind],
        content=body.model_dump(mode="json"),
    )


@router.get("", response_model=list[ServiceStatusResponse])
async def list_services(
    _principal: Annotated[Principal, Depends(require_permission(Permission.DEPLOYMENT_READ))],
    controller: Annotated[DeploymentController, Depends(get_controller)],
) -> list[ServiceStatusResponse]:
    return [_status_response(s) for s in await controller.services()]


@router.get("/{service}", response_model=ServiceStatusResponse)
async def get_service_status(
    service: str,
    _principal: Annotated[Principal, Depends(require_permission(Permission.DEPLOYMENT_READ))],
    controller: Annotated[DeploymentController, Depends(get_controller)],
) -> ServiceStatusResponse:
    """Lock-free status snapshot; may trail an in-flight operation."""
    service_status = await controller.status(service)
    if service_status.revision_count == 0 and not service_status.operation_in_progress:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Service {service} has never been deployed",
        )
    return _status_response(service_status)


@router.get("/{service}/revisions", response_model=list[RevisionResponse])
async def list_revisions(
    service: str,
    _principal: Annotated[Principal, Depends(require_permission(Permission.DEPLOYMENT_READ))],
    controller: Annotated[DeploymentController, Depends(get_controller)],
    limit: int = Query(default=50, ge=1, le=500),
) -> list[RevisionResponse]:
    return [_revision_response(r) for r in await controller.revisions(service, limit=limit)]


@router.get("/{service}/events", response_model=list[LifecycleEventResponse])
async def list_events(
    service: str,
    _principal: Annotated[Principal, Depends(require_permission(Permission.DEPLOYMENT_READ))],
    controller: Annotated[DeploymentController, Depends(get_controller)],
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[LifecycleEventResponse]:
    return [_event_response(e) for e in await controller.events(service, limit=limit)]


@router.post(
    "/{service}/deployments",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse},
               502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def deploy_service(
    service: str,
    request: DeployRequest,
    principal: Annotated[Principal, Depends(require_permission(Permission.DEPLOYMENT_CREATE))],
    controller: Annotated[DeploymentController, Depends(get_controller)],
) -> OperationResponse | JSONResponse:
    """Deploy an artifact to a service and wait for the terminal outcome."""
    options = DeployOptions(
        scan=request.scan,
        cluster=request.cluster,
        actor=principal.subject,
        timeout_seconds=request.timeout_seconds,
        correlation_id=get_correlation_id(),
    )
    try:
        result = await controller.deploy(service, request.artifact_ref, options)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e
    return _operation_outcome(result)


@router.post(
    "/{service}/rollback",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse},
               502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def rollback_service(
    service: str,
    principal: Annotated[
        Principal, Depends(require_permission(Permission.DEPLOYMENT_ROLLBACK))
    ],
    controller: Annotated[DeploymentController, Depends(get_controller)],
    request: RollbackRequest | None = None,
) -> OperationResponse | JSONResponse:
    """Roll the service back to its previous healthy revision."""
    request = request or RollbackRequest()
    options = DeployOptions(
        scan=request.scan,
        actor=principal.subject,
        timeout_seconds=request.timeout_seconds,
        correlation_id=get_correlation_id(),
    )
    try:
        result = await controller.rollback(service, options)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e
    return _operation_outcome(result)
