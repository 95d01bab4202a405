"""BambooHR sync endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from hawki.core.deps import get_bamboohr_client, get_progress_sink
from hawki.db.session import get_db
from hawki.integrations.bamboohr.client import BambooHRClient
from hawki.integrations.bamboohr.schemas import EmployeeSyncRequest, TimeOffSyncRequest
from hawki.integrations.bamboohr.service import sync_employees, sync_time_off
from hawki.services.progress import InMemoryProgressSink

router = APIRouter()


@router.post("/sync-employees")
def bamboohr_sync_employees(
    payload: EmployeeSyncRequest = Body(default=EmployeeSyncRequest()),
    db: Session = Depends(get_db),
    client: BambooHRClient = Depends(get_bamboohr_client),
    progress: InMemoryProgressSink = Depends(get_progress_sink),
) -> dict[str, Any]:
    counts = sync_employees(db, client, division=payload.division, progress=progress)
    return {"success": True, "data": counts.to_dict()}


@router.post("/sync-time-off")
def bamboohr_sync_time_off(
    payload: TimeOffSyncRequest,
    db: Session = Depends(get_db),
    client: BambooHRClient = Depends(get_bamboohr_client),
    progress: InMemoryProgressSink = Depends(get_progress_sink),
) -> dict[str, Any]:
    counts = sync_time_off(db, client, payload.start, payload.end, status=payload.status, progress=progress)
    return {"success": True, "data": counts.to_dict()}
