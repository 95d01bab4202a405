"""Sync bookkeeping: per-run counters and per-resource checkpoints."""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from hawki.models.enums import SyncStatus, SyncTable, SyncType
from hawki.models.sync_history import SyncHistory

MAX_MESSAGES = 50


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class SyncCounts:
    """Per-run tallies returned by every sync step."""

    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    messages: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.inserted + self.updated

    def note(self, message: str) -> None:
        if len(self.messages) < MAX_MESSAGES:
            self.messages.append(message)

    def record_error(self, message: str) -> None:
        self.errors += 1
        self.note(message)

    def merge(self, other: "SyncCounts") -> None:
        self.inserted += other.inserted
        self.updated += other.updated
        self.skipped += other.skipped
        self.errors += other.errors
        for message in other.messages:
            self.note(message)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total"] = self.processed
        return data


def _table_value(table: SyncTable | str) -> str:
    return table.value if isinstance(table, SyncTable) else str(table)


def _scope_filter(query, project_id: str | None):
    if project_id is None:
        return query.filter(SyncHistory.project_id.is_(None))
    return query.filter(SyncHistory.project_id == project_id)


def get_checkpoint(db: Session, table: SyncTable | str, project_id: str | None = None) -> SyncHistory | None:
    query = db.query(SyncHistory).filter(SyncHistory.table_name == _table_value(table))
    return _scope_filter(query, project_id).first()


def record_checkpoint(
    db: Session,
    table: SyncTable | str,
    *,
    project_id: str | None = None,
    sync_type: SyncType = SyncType.full,
    status: SyncStatus = SyncStatus.success,
    records_processed: int = 0,
    error_message: str | None = None,
    synced_at: dt.datetime | None = None,
) -> SyncHistory:
    """Upsert the single checkpoint row for (table, project_id).

    NULL scopes are matched explicitly since a unique index does not
    deduplicate NULLs. `last_sync_at` only moves forward on success.
    """
    row = get_checkpoint(db, table, project_id)
    stamp = synced_at or utcnow()
    if row is None:
        row = SyncHistory(table_name=_table_value(table), project_id=project_id, last_sync_at=stamp)
        db.add(row)
    elif status == SyncStatus.success:
        row.last_sync_at = stamp
    row.sync_type = sync_type
    row.status = status
    row.records_processed = records_processed
    row.error_message = error_message[:4000] if error_message else None
    db.commit()
    db.refresh(row)
    return row


def get_last_sync_time(db: Session, table: SyncTable | str, project_id: str | None = None) -> dt.datetime | None:
    row = get_checkpoint(db, table, project_id)
    if row is None or row.status != SyncStatus.success:
        return None
    return row.last_sync_at


def list_checkpoints(db: Session) -> list[SyncHistory]:
    return db.query(SyncHistory).order_by(SyncHistory.updated_at.desc(), SyncHistory.id.desc()).all()
