"""Polling endpoint for sync progress."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from hawki.core.deps import get_progress_sink
from hawki.core.exceptions import NotFoundError
from hawki.services.progress import InMemoryProgressSink

router = APIRouter()


@router.get("/{service}/{operation}")
def read_progress(
    service: str,
    operation: str,
    progress: InMemoryProgressSink = Depends(get_progress_sink),
) -> dict[str, Any]:
    record = progress.get(service, operation)
    if record is None:
        raise NotFoundError("No progress recorded", details={"service": service, "operation": operation})
    return {"success": True, "data": record}
