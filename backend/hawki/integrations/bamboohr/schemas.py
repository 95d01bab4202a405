"""DTOs for the BambooHR sync endpoints."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field, model_validator


class EmployeeSyncRequest(BaseModel):
    division: str | None = Field(default=None, max_length=255)


class TimeOffSyncRequest(BaseModel):
    start: dt.date
    end: dt.date
    status: str | None = Field(default="approved", max_length=64)

    @model_validator(mode="after")
    def _check_range(self) -> "TimeOffSyncRequest":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self
