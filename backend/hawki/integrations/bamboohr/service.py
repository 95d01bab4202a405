"""BambooHR -> local mirror sync for the employee directory and time-off requests."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from sqlalchemy.orm import Session

from hawki.core.config import settings
from hawki.integrations.bamboohr.client import BambooHRClient
from hawki.integrations.bamboohr.payloads import DirectoryEmployee, TimeOffRequest
from hawki.models.employee import BambooHREmployee, BambooHRTimeOff
from hawki.models.enums import SyncStatus, SyncTable, SyncType
from hawki.services.checkpoints import SyncCounts, record_checkpoint
from hawki.services.progress import NullProgressSink, ProgressSink
from hawki.services.upsert import upsert

logger = logging.getLogger(__name__)

PROGRESS_SERVICE = "bamboohr"


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _employee_values(payload: DirectoryEmployee, synced_at: dt.datetime) -> dict[str, Any]:
    return {
        "first_name": payload.first_name or payload.display_name or "",
        "last_name": payload.last_name or "",
        "display_name": payload.display_name,
        "preferred_name": payload.preferred_name,
        "job_title": payload.job_title,
        "department": payload.department,
        "division": payload.division,
        "location": payload.location,
        "email": payload.work_email,
        "photo_url": payload.photo_url,
        "status": payload.status or "active",
        "last_sync_at": synced_at,
    }


def _time_off_values(payload: TimeOffRequest, synced_at: dt.datetime) -> dict[str, Any]:
    return {
        "employee_id": payload.employee_id,
        "type_id": payload.type.id if payload.type else None,
        "type_name": payload.type.name if payload.type else payload.name,
        "status": payload.status,
        "start_date": payload.start,
        "end_date": payload.end,
        "amount": payload.amount.amount if payload.amount else None,
        "unit": payload.amount.unit if payload.amount else None,
        "notes": payload.notes,
        "last_sync_at": synced_at,
    }


def _finish(db: Session, table: SyncTable, counts: SyncCounts, started_at: dt.datetime, sink: ProgressSink) -> None:
    record_checkpoint(
        db,
        table,
        sync_type=SyncType.full,
        status=SyncStatus.success,
        records_processed=counts.processed,
        synced_at=started_at,
    )
    sink.complete(PROGRESS_SERVICE, table.value, counts.to_dict())
    logger.info(
        "BambooHR %s sync completed inserted=%s updated=%s skipped=%s errors=%s",
        table.value, counts.inserted, counts.updated, counts.skipped, counts.errors,
    )


def _fail(db: Session, table: SyncTable, exc: Exception, sink: ProgressSink) -> None:
    db.rollback()
    record_checkpoint(db, table, sync_type=SyncType.full, status=SyncStatus.failed, error_message=str(exc))
    sink.fail(PROGRESS_SERVICE, table.value, str(exc))
    logger.error("BambooHR %s sync failed: %s", table.value, exc)


def sync_employees(
    db: Session,
    client: BambooHRClient,
    *,
    division: str | None = None,
    progress: ProgressSink | None = None,
) -> SyncCounts:
    """Upsert directory employees keyed by BambooHR id, optionally limited to one division."""
    sink = progress or NullProgressSink()
    wanted_division = (division if division is not None else settings.BAMBOOHR_DIVISION).strip()
    counts = SyncCounts()
    started_at = utcnow()
    sink.initialize(PROGRESS_SERVICE, SyncTable.bamboohr_employees.value, {"message": "Fetching directory"})
    try:
        employees, rejected = client.get_directory()
        counts.errors += rejected
        for index, payload in enumerate(employees, start=1):
            if wanted_division and (payload.division or "").strip() != wanted_division:
                counts.skipped += 1
                continue
            try:
                created = upsert(db, BambooHREmployee, payload.id, _employee_values(payload, started_at))
                if created:
                    counts.inserted += 1
                else:
                    counts.updated += 1
            except Exception as exc:  # noqa: BLE001
                counts.record_error(f"employee {payload.id}: {exc}")
                logger.exception("Failed to process BambooHR employee %s", payload.id)
            if index % 50 == 0:
                sink.update(
                    PROGRESS_SERVICE,
                    SyncTable.bamboohr_employees.value,
                    {"progress": int(index * 100 / len(employees)), "message": f"Processed {index}/{len(employees)}"},
                )
        db.commit()
    except Exception as exc:
        _fail(db, SyncTable.bamboohr_employees, exc, sink)
        raise
    _finish(db, SyncTable.bamboohr_employees, counts, started_at, sink)
    return counts


def sync_time_off(
    db: Session,
    client: BambooHRClient,
    start: dt.date,
    end: dt.date,
    *,
    status: str | None = None,
    progress: ProgressSink | None = None,
) -> SyncCounts:
    """Upsert time-off requests in [start, end] keyed by request id."""
    sink = progress or NullProgressSink()
    counts = SyncCounts()
    started_at = utcnow()
    sink.initialize(PROGRESS_SERVICE, SyncTable.time_off.value, {"message": f"Fetching time off {start} to {end}"})
    try:
        requests, rejected = client.get_time_off_requests(start, end, status=status)
        counts.errors += rejected
        for payload in requests:
            try:
                created = upsert(db, BambooHRTimeOff, payload.id, _time_off_values(payload, started_at))
                if created:
                    counts.inserted += 1
                else:
                    counts.updated += 1
            except Exception as exc:  # noqa: BLE001
                counts.record_error(f"time off {payload.id}: {exc}")
                logger.exception("Failed to process BambooHR time-off request %s", payload.id)
        db.commit()
    except Exception as exc:
        _fail(db, SyncTable.time_off, exc, sink)
        raise
    _finish(db, SyncTable.time_off, counts, started_at, sink)
    return counts
