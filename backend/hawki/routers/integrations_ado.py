"""Azure DevOps sync endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from hawki.core.deps import get_ado_client, get_progress_sink
from hawki.db.session import get_db
from hawki.integrations.azure_devops.cache import response_cache
from hawki.integrations.azure_devops.client import AzureDevOpsClient
from hawki.integrations.azure_devops.schemas import (
    SyncAllRequest,
    SyncIterationsRequest,
    SyncUsersRequest,
    SyncWorkItemsRequest,
    ToggleStatusRequest,
)
from hawki.integrations.azure_devops.service import (
    get_status,
    serialize_checkpoint,
    set_iteration_active,
    set_project_active,
    set_team_active,
    set_team_iteration_active,
    sync_all,
    sync_iterations,
    sync_projects,
    sync_team_iterations,
    sync_teams,
    sync_users,
    sync_work_items,
)
from hawki.services.checkpoints import list_checkpoints
from hawki.services.progress import InMemoryProgressSink

router = APIRouter()


def _ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


@router.get("/status")
def ado_status(db: Session = Depends(get_db)) -> dict[str, Any]:
    return _ok(get_status(db))


@router.get("/sync-history")
def ado_sync_history(db: Session = Depends(get_db)) -> dict[str, Any]:
    return _ok([serialize_checkpoint(row) for row in list_checkpoints(db)])


@router.post("/sync-all")
def ado_sync_all(
    payload: SyncAllRequest = Body(default=SyncAllRequest()),
    db: Session = Depends(get_db),
    client: AzureDevOpsClient = Depends(get_ado_client),
    progress: InMemoryProgressSink = Depends(get_progress_sink),
):
    result = sync_all(db, client, depth=payload.depth, first_batch_only=payload.first_batch_only, progress=progress)
    if not result.success:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": result.error, "data": result.to_dict()},
        )
    return _ok(result.to_dict(), "Sync completed")


@router.post("/sync-projects")
def ado_sync_projects(
    db: Session = Depends(get_db),
    client: AzureDevOpsClient = Depends(get_ado_client),
    progress: InMemoryProgressSink = Depends(get_progress_sink),
) -> dict[str, Any]:
    return _ok(sync_projects(db, client, progress=progress).to_dict())


@router.post("/sync-users")
def ado_sync_users(
    payload: SyncUsersRequest = Body(default=SyncUsersRequest()),
    db: Session = Depends(get_db),
    client: AzureDevOpsClient = Depends(get_ado_client),
    progress: InMemoryProgressSink = Depends(get_progress_sink),
) -> dict[str, Any]:
    counts = sync_users(
        db,
        client,
        subject_types=payload.subject_types,
        scope_descriptor=payload.scope_descriptor,
        progress=progress,
    )
    return _ok(counts.to_dict())


@router.post("/sync-teams")
def ado_sync_teams(
    db: Session = Depends(get_db),
    client: AzureDevOpsClient = Depends(get_ado_client),
    progress: InMemoryProgressSink = Depends(get_progress_sink),
) -> dict[str, Any]:
    return _ok(sync_teams(db, client, progress=progress).to_dict())


@router.post("/sync-iterations")
def ado_sync_iterations(
    payload: SyncIterationsRequest = Body(default=SyncIterationsRequest()),
    db: Session = Depends(get_db),
    client: AzureDevOpsClient = Depends(get_ado_client),
    progress: InMemoryProgressSink = Depends(get_progress_sink),
) -> dict[str, Any]:
    return _ok(sync_iterations(db, client, depth=payload.depth, progress=progress).to_dict())


@router.post("/sync-team-iterations")
def ado_sync_team_iterations(
    db: Session = Depends(get_db),
    client: AzureDevOpsClient = Depends(get_ado_client),
    progress: InMemoryProgressSink = Depends(get_progress_sink),
) -> dict[str, Any]:
    return _ok(sync_team_iterations(db, client, progress=progress).to_dict())


@router.post("/sync-work-items")
def ado_sync_work_items(
    payload: SyncWorkItemsRequest = Body(default=SyncWorkItemsRequest()),
    db: Session = Depends(get_db),
    client: AzureDevOpsClient = Depends(get_ado_client),
    progress: InMemoryProgressSink = Depends(get_progress_sink),
) -> dict[str, Any]:
    counts = sync_work_items(
        db,
        client,
        first_batch_only=payload.first_batch_only,
        project_id=payload.project_id,
        progress=progress,
    )
    return _ok(counts.to_dict())


@router.post("/clear-cache")
def ado_clear_cache() -> dict[str, Any]:
    cleared = response_cache.clear()
    return _ok({"cleared": cleared}, "Azure DevOps cache cleared")


def _toggle_response(row: Any) -> dict[str, Any]:
    return _ok({"id": row.id, "name": getattr(row, "name", None) or getattr(row, "iteration_name", None), "is_active": row.is_active})


@router.post("/toggle-project-status")
def ado_toggle_project(payload: ToggleStatusRequest, db: Session = Depends(get_db)) -> dict[str, Any]:
    return _toggle_response(set_project_active(db, payload.id, payload.is_active))


@router.post("/toggle-team-status")
def ado_toggle_team(payload: ToggleStatusRequest, db: Session = Depends(get_db)) -> dict[str, Any]:
    return _toggle_response(set_team_active(db, payload.id, payload.is_active))


@router.post("/toggle-iteration-status")
def ado_toggle_iteration(payload: ToggleStatusRequest, db: Session = Depends(get_db)) -> dict[str, Any]:
    return _toggle_response(set_iteration_active(db, payload.id, payload.is_active))


@router.post("/toggle-team-iteration-status")
def ado_toggle_team_iteration(payload: ToggleStatusRequest, db: Session = Depends(get_db)) -> dict[str, Any]:
    return _toggle_response(set_team_iteration_active(db, payload.id, payload.is_active))
