"""Typed records for BambooHR directory and time-off payloads."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DirectoryEmployee(_Payload):
    id: str
    display_name: str | None = Field(default=None, alias="displayName")
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    preferred_name: str | None = Field(default=None, alias="preferredName")
    job_title: str | None = Field(default=None, alias="jobTitle")
    work_email: str | None = Field(default=None, alias="workEmail")
    department: str | None = None
    division: str | None = None
    location: str | None = None
    photo_url: str | None = Field(default=None, alias="photoUrl")
    status: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class TimeOffType(_Payload):
    id: str | None = None
    name: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class TimeOffAmount(_Payload):
    unit: str | None = None
    amount: float | None = None


class TimeOffRequest(_Payload):
    id: str
    employee_id: str = Field(alias="employeeId")
    name: str | None = None
    status: str = "requested"
    start: dt.date
    end: dt.date
    type: TimeOffType | None = None
    amount: TimeOffAmount | None = None
    notes: str | None = None

    @field_validator("id", "employee_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("status", mode="before")
    @classmethod
    def _flatten_status(cls, value: Any) -> Any:
        # {"status": "approved", "lastChanged": ...}
        if isinstance(value, dict):
            return value.get("status") or "requested"
        return value or "requested"

    @field_validator("notes", mode="before")
    @classmethod
    def _flatten_notes(cls, value: Any) -> Any:
        if isinstance(value, dict):
            parts = [str(text).strip() for text in value.values() if text]
            return "\n".join(part for part in parts if part) or None
        return value
