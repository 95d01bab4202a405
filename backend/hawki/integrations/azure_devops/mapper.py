"""Mapping from decoded Azure DevOps payloads to local column values."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any

from hawki.integrations.azure_devops.payloads import (
    IdentityRef,
    ProjectPayload,
    TeamIterationPayload,
    TeamPayload,
    UserPayload,
    WorkItemPayload,
)
from hawki.integrations.azure_devops.tree import FlatIteration
from hawki.models.ado import AdoProject, AdoTeam


def team_iteration_key(team_id: str, iteration_identifier: str) -> str:
    return f"{team_id}-{iteration_identifier}"


def _date(value: dt.datetime | None) -> dt.date | None:
    return value.date() if value is not None else None


def project_values(payload: ProjectPayload) -> dict[str, Any]:
    # is_active is operator-owned and never overwritten here.
    return {
        "name": payload.name,
        "description": payload.description,
        "url": payload.url,
        "state": payload.state,
        "revision": payload.revision,
        "visibility": payload.visibility,
        "default_team_id": payload.default_team.id if payload.default_team else None,
        "last_update_time": payload.last_update_time,
    }


def user_values(payload: UserPayload) -> dict[str, Any]:
    return {
        "display_name": payload.display_name or payload.principal_name or payload.descriptor,
        "mail_address": payload.mail_address,
        "origin": payload.origin,
        "origin_id": payload.origin_id,
        "subject_kind": payload.subject_kind,
        "url": payload.url,
        "meta_type": payload.meta_type,
        "directory_alias": payload.directory_alias,
        "domain": payload.domain,
        "principal_name": payload.principal_name,
        "is_active": True,
    }


def team_values(payload: TeamPayload, project: AdoProject) -> dict[str, Any]:
    return {
        "name": payload.name,
        "description": payload.description,
        "url": payload.url,
        "identity_url": payload.identity_url,
        "project_id": project.id,
        "project_name": payload.project_name or project.name,
        "identity_id": payload.identity.id if payload.identity else None,
    }


def iteration_values(record: FlatIteration, project: AdoProject) -> dict[str, Any]:
    return {
        "node_id": record.node_id,
        "name": record.name,
        "path": record.path,
        "url": record.url,
        "project_id": project.id,
        "project_name": project.name,
        "start_date": record.start_date,
        "end_date": record.end_date,
        "time_frame": record.time_frame,
        "attributes": record.attributes or {},
    }


def team_iteration_values(payload: TeamIterationPayload, team: AdoTeam) -> dict[str, Any]:
    attributes = payload.attributes
    return {
        "iteration_identifier": payload.id,
        "team_id": team.id,
        "team_name": team.name,
        "project_id": team.project_id,
        "iteration_name": payload.name,
        "iteration_path": payload.path,
        "start_date": _date(attributes.start_date) if attributes else None,
        "end_date": _date(attributes.finish_date) if attributes else None,
        "timeframe": attributes.time_frame if attributes else None,
        # Present in the team's sprint settings means assigned.
        "assigned": True,
    }


@dataclass
class WorkItemReferences:
    """Locally known ids used to null out dangling references."""

    user_descriptors: set[str] = field(default_factory=set)
    iteration_by_node: dict[int, str] = field(default_factory=dict)
    iteration_by_path: dict[str, str] = field(default_factory=dict)
    # path -> [(team_iteration_id, is_active)]
    team_iterations_by_path: dict[str, list[tuple[str, bool]]] = field(default_factory=dict)

    def user(self, ref: IdentityRef | None) -> str | None:
        if ref is None or not ref.descriptor:
            return None
        return ref.descriptor if ref.descriptor in self.user_descriptors else None

    def iteration(self, node_id: int | None, path: str | None) -> str | None:
        if node_id is not None and node_id in self.iteration_by_node:
            return self.iteration_by_node[node_id]
        if path:
            return self.iteration_by_path.get(path)
        return None

    def team_iteration(self, path: str | None) -> tuple[str | None, bool]:
        """Resolve a team-iteration by path, preferring active rows, then the lowest id."""
        if not path:
            return None, False
        candidates = self.team_iterations_by_path.get(path) or []
        if not candidates:
            return None, False
        team_iteration_id, is_active = sorted(candidates, key=lambda item: (not item[1], item[0]))[0]
        return team_iteration_id, is_active


def _display_name(ref: IdentityRef | None) -> str | None:
    return ref.display_name if ref else None


def work_item_values(payload: WorkItemPayload, project: AdoProject, refs: WorkItemReferences) -> dict[str, Any]:
    fields = payload.fields
    team_iteration_id, _ = refs.team_iteration(fields.iteration_path)
    return {
        "url": payload.url,
        "project_id": project.id,
        "project_name": project.name,
        "work_item_type": fields.work_item_type,
        "title": fields.title,
        "state": fields.state,
        "reason": fields.reason,
        "priority": fields.priority,
        "severity": fields.severity,
        "story_points": fields.story_points,
        "effort": fields.effort,
        "remaining_work": fields.remaining_work,
        "completed_work": fields.completed_work,
        "original_estimate": fields.original_estimate,
        "assigned_to": refs.user(fields.assigned_to),
        "assigned_to_display_name": _display_name(fields.assigned_to),
        "created_by": refs.user(fields.created_by),
        "created_by_display_name": _display_name(fields.created_by),
        "modified_by": refs.user(fields.changed_by),
        "modified_by_display_name": _display_name(fields.changed_by),
        "iteration_path": fields.iteration_path,
        "iteration_id": refs.iteration(fields.iteration_id, fields.iteration_path),
        "team_iteration_id": team_iteration_id,
        "area_path": fields.area_path,
        "tags": list(fields.tags),
        "custom_fields": fields.custom_fields,
        "created_date": fields.created_date,
        "changed_date": fields.changed_date,
        "closed_date": fields.closed_date,
        "parent_id": fields.parent,
        "revision": payload.rev,
    }
