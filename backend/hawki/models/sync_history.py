"""Sync checkpoints, one row per (resource table, project scope)."""

from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, Enum, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hawki.db.base import Base
from hawki.models.enums import SyncStatus, SyncType


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SyncHistory(Base):
    __tablename__ = "sync_history"
    __table_args__ = (UniqueConstraint("table_name", "project_id", name="uq_sync_history_table_project"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # NULL for global resources; the upsert in checkpoints.py keeps NULL scopes unique.
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    last_sync_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    sync_type: Mapped[SyncType] = mapped_column(
        Enum(SyncType, name="sync_type", values_callable=lambda x: [e.value for e in x]),
        default=SyncType.full,
        nullable=False,
    )
    status: Mapped[SyncStatus] = mapped_column(
        Enum(SyncStatus, name="sync_status", values_callable=lambda x: [e.value for e in x]),
        default=SyncStatus.success,
        nullable=False,
        index=True,
    )
    records_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
