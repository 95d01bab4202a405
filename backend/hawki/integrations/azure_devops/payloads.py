"""Typed records for Azure DevOps REST payloads.

Responses are decoded once at the client boundary; everything downstream
reads attributes instead of probing dictionaries.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Reference(_Payload):
    id: str | None = None
    name: str | None = None


class ProjectPayload(_Payload):
    id: str
    name: str
    description: str | None = None
    url: str | None = None
    state: str | None = None
    revision: int | None = None
    visibility: str | None = None
    last_update_time: dt.datetime | None = Field(default=None, alias="lastUpdateTime")
    default_team: Reference | None = Field(default=None, alias="defaultTeam")


class UserPayload(_Payload):
    descriptor: str
    display_name: str = Field(default="", alias="displayName")
    mail_address: str | None = Field(default=None, alias="mailAddress")
    origin: str | None = None
    origin_id: str | None = Field(default=None, alias="originId")
    subject_kind: str | None = Field(default=None, alias="subjectKind")
    url: str | None = None
    meta_type: str | None = Field(default=None, alias="metaType")
    directory_alias: str | None = Field(default=None, alias="directoryAlias")
    domain: str | None = None
    principal_name: str | None = Field(default=None, alias="principalName")


class TeamPayload(_Payload):
    id: str
    name: str
    description: str | None = None
    url: str | None = None
    identity_url: str | None = Field(default=None, alias="identityUrl")
    project_id: str | None = Field(default=None, alias="projectId")
    project_name: str | None = Field(default=None, alias="projectName")
    identity: Reference | None = None

    def resolved_project_id(self) -> str | None:
        """Owning project id, falling back to the `/projects/{id}/teams/` segment of the URL."""
        if self.project_id:
            return self.project_id
        url = self.url or ""
        marker = "/projects/"
        if marker not in url:
            return None
        tail = url.split(marker, 1)[1]
        project_id = tail.split("/", 1)[0].strip()
        return project_id or None


class IterationAttributes(_Payload):
    start_date: dt.datetime | None = Field(default=None, alias="startDate")
    finish_date: dt.datetime | None = Field(default=None, alias="finishDate")
    time_frame: str | None = Field(default=None, alias="timeFrame")

    @field_validator("start_date", "finish_date", mode="wrap")
    @classmethod
    def _lenient_date(cls, value: Any, handler: Any) -> Any:
        # An unparseable date only drops that date.
        try:
            return handler(value)
        except ValidationError:
            return None

    @field_validator("time_frame", mode="before")
    @classmethod
    def _time_frame_text(cls, value: Any) -> Any:
        return value if value is None or isinstance(value, str) else None


class ClassificationNodePayload(_Payload):
    id: int | None = None
    identifier: str | None = None
    name: str | None = None
    structure_type: str | None = Field(default=None, alias="structureType")
    path: str | None = None
    url: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    children: list["ClassificationNodePayload"] = Field(default_factory=list)

    @field_validator("attributes", mode="before")
    @classmethod
    def _attributes_default(cls, value: Any) -> Any:
        return value if value is not None else {}

    @field_validator("children", mode="before")
    @classmethod
    def _children_default(cls, value: Any) -> Any:
        return value if value is not None else []

    @property
    def dates(self) -> IterationAttributes:
        return IterationAttributes.model_validate(self.attributes or {})


class TeamIterationPayload(_Payload):
    id: str
    name: str | None = None
    path: str | None = None
    url: str | None = None
    attributes: IterationAttributes | None = None


class IdentityRef(_Payload):
    display_name: str | None = Field(default=None, alias="displayName")
    descriptor: str | None = None
    unique_name: str | None = Field(default=None, alias="uniqueName")
    id: str | None = None


def _identity(value: Any) -> Any:
    # Older api-versions return "Display Name <user@domain>" strings.
    if isinstance(value, str):
        return {"displayName": value.split("<", 1)[0].strip() or value}
    return value


class WorkItemFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    title: str | None = Field(default=None, alias="System.Title")
    state: str | None = Field(default=None, alias="System.State")
    reason: str | None = Field(default=None, alias="System.Reason")
    work_item_type: str | None = Field(default=None, alias="System.WorkItemType")
    team_project: str | None = Field(default=None, alias="System.TeamProject")
    iteration_path: str | None = Field(default=None, alias="System.IterationPath")
    iteration_id: int | None = Field(default=None, alias="System.IterationId")
    area_path: str | None = Field(default=None, alias="System.AreaPath")
    tags: list[str] = Field(default_factory=list, alias="System.Tags")
    assigned_to: IdentityRef | None = Field(default=None, alias="System.AssignedTo")
    created_by: IdentityRef | None = Field(default=None, alias="System.CreatedBy")
    changed_by: IdentityRef | None = Field(default=None, alias="System.ChangedBy")
    created_date: dt.datetime | None = Field(default=None, alias="System.CreatedDate")
    changed_date: dt.datetime | None = Field(default=None, alias="System.ChangedDate")
    closed_date: dt.datetime | None = Field(default=None, alias="Microsoft.VSTS.Common.ClosedDate")
    parent: int | None = Field(default=None, alias="System.Parent")
    priority: int | None = Field(default=None, alias="Microsoft.VSTS.Common.Priority")
    severity: str | None = Field(default=None, alias="Microsoft.VSTS.Common.Severity")
    story_points: float | None = Field(default=None, alias="Microsoft.VSTS.Scheduling.StoryPoints")
    effort: float | None = Field(default=None, alias="Microsoft.VSTS.Scheduling.Effort")
    remaining_work: float | None = Field(default=None, alias="Microsoft.VSTS.Scheduling.RemainingWork")
    completed_work: float | None = Field(default=None, alias="Microsoft.VSTS.Scheduling.CompletedWork")
    original_estimate: float | None = Field(default=None, alias="Microsoft.VSTS.Scheduling.OriginalEstimate")

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [tag.strip() for tag in value.split(";") if tag.strip()]
        return value

    @field_validator("assigned_to", "created_by", "changed_by", mode="before")
    @classmethod
    def _coerce_identity(cls, value: Any) -> Any:
        return _identity(value)

    @property
    def custom_fields(self) -> dict[str, Any]:
        return {key: value for key, value in (self.model_extra or {}).items() if key.startswith("Custom.")}


class WorkItemPayload(_Payload):
    id: int
    rev: int | None = None
    url: str | None = None
    fields: WorkItemFields = Field(default_factory=WorkItemFields)


ClassificationNodePayload.model_rebuild()
