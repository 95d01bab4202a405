"""Shared enum values used by the database models and schemas."""

from __future__ import annotations

import enum


class SyncTable(str, enum.Enum):
    projects = "projects"
    users = "users"
    teams = "teams"
    iterations = "iterations"
    team_iterations = "team_iterations"
    work_items = "work_items"
    bamboohr_employees = "bamboohr_employees"
    time_off = "time_off"


class SyncType(str, enum.Enum):
    full = "full"
    incremental = "incremental"


class SyncStatus(str, enum.Enum):
    success = "success"
    failed = "failed"
    in_progress = "in_progress"


class SyncStage(str, enum.Enum):
    idle = "idle"
    projects = "projects"
    users = "users"
    teams = "teams"
    iterations = "iterations"
    team_iterations = "team_iterations"
    work_items = "work_items"
    done = "done"
    failed = "failed"


class AttendanceStatus(str, enum.Enum):
    present = "present"
    time_off = "time_off"
    no_track = "no_track"


class MatchTarget(str, enum.Enum):
    bamboohr = "bamboohr"
    ado = "ado"
