"""DTOs for the Azure DevOps sync endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SyncAllRequest(BaseModel):
    depth: int = Field(default=10, ge=1, le=50)
    first_batch_only: bool = False


class SyncIterationsRequest(BaseModel):
    depth: int = Field(default=10, ge=1, le=50)


class SyncUsersRequest(BaseModel):
    subject_types: str | None = Field(default=None, max_length=128)
    scope_descriptor: str | None = Field(default=None, max_length=255)


class SyncWorkItemsRequest(BaseModel):
    first_batch_only: bool = False
    project_id: str | None = Field(default=None, max_length=64)


class ToggleStatusRequest(BaseModel):
    id: str = Field(min_length=1, max_length=160)
    is_active: bool

