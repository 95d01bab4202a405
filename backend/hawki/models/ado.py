"""Local mirror of Azure DevOps projects, users, teams, iterations and work items."""

from __future__ import annotations

import datetime as dt

from sqlalchemy import JSON, BigInteger, Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hawki.db.base import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


WELL_FORMED_STATE = "wellFormed"


class AdoProject(Base):
    __tablename__ = "ado_projects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    revision: Mapped[int | None] = mapped_column(Integer, nullable=True)
    visibility: Mapped[str | None] = mapped_column(String(32), nullable=True)
    default_team_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_update_time: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Operator-controlled; sync only sets it when the project is first seen.
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_processable(self) -> bool:
        return bool(self.is_active and self.state == WELL_FORMED_STATE)


class AdoUser(Base):
    __tablename__ = "ado_users"

    descriptor: Mapped[str] = mapped_column(String(255), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mail_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    origin: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    origin_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subject_kind: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    directory_alias: Mapped[str | None] = mapped_column(String(255), nullable=True)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    principal_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AdoTeam(Base):
    __tablename__ = "ado_teams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    identity_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("ado_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    project_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    identity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AdoIteration(Base):
    __tablename__ = "ado_iterations"

    # Source identifier (GUID) is the primary key; node_id is the numeric id work items reference.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    node_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("ado_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    project_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    time_frame: Mapped[str | None] = mapped_column(String(16), nullable=True)
    attributes: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AdoTeamIteration(Base):
    __tablename__ = "ado_team_iterations"

    # "{team_id}-{iteration_identifier}"
    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    iteration_identifier: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    team_id: Mapped[str] = mapped_column(ForeignKey("ado_teams.id", ondelete="CASCADE"), nullable=False, index=True)
    team_name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_id: Mapped[str] = mapped_column(ForeignKey("ado_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    iteration_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    iteration_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    timeframe: Mapped[str | None] = mapped_column(String(16), nullable=True)
    assigned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AdoWorkItem(Base):
    __tablename__ = "ado_work_items"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("ado_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    project_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    work_item_type: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reason: Mapped[str | None] = mapped_column(String(128), nullable=True)
    priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    severity: Mapped[str | None] = mapped_column(String(64), nullable=True)
    story_points: Mapped[float | None] = mapped_column(Float, nullable=True)
    effort: Mapped[float | None] = mapped_column(Float, nullable=True)
    remaining_work: Mapped[float | None] = mapped_column(Float, nullable=True)
    completed_work: Mapped[float | None] = mapped_column(Float, nullable=True)
    original_estimate: Mapped[float | None] = mapped_column(Float, nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(
        ForeignKey("ado_users.descriptor", ondelete="SET NULL"), nullable=True, index=True
    )
    assigned_to_display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[str | None] = mapped_column(ForeignKey("ado_users.descriptor", ondelete="SET NULL"), nullable=True)
    created_by_display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    modified_by: Mapped[str | None] = mapped_column(ForeignKey("ado_users.descriptor", ondelete="SET NULL"), nullable=True)
    modified_by_display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    iteration_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    iteration_id: Mapped[str | None] = mapped_column(
        ForeignKey("ado_iterations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    team_iteration_id: Mapped[str | None] = mapped_column(
        ForeignKey("ado_team_iterations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    area_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    custom_fields: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    changed_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    closed_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Parents can arrive in a later batch than their children, so no FK constraint.
    parent_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    revision: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_sync_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
