"""Pydantic schemas for identity mapping requests and responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_BULK_MAPPINGS = 500


def _clean_external_id(value: Any) -> Any:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


class MappingCreate(BaseModel):
    ina_emp_id: int = Field(ge=1)
    bamboohr_id: str | None = Field(default=None, max_length=32)
    ado_user_id: str | None = Field(default=None, max_length=255)

    @field_validator("bamboohr_id", "ado_user_id", mode="before")
    @classmethod
    def normalize_external_id(cls, value: Any) -> Any:
        return _clean_external_id(value)

    @model_validator(mode="after")
    def require_target(self) -> "MappingCreate":
        if self.bamboohr_id is None and self.ado_user_id is None:
            raise ValueError("bamboohr_id or ado_user_id is required")
        return self


class BulkMappingRequest(BaseModel):
    mappings: list[MappingCreate] = Field(min_length=1, max_length=MAX_BULK_MAPPINGS)


class MappingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ina_emp_id: int
    bamboohr_id: str | None = None
    ado_user_id: str | None = None


class BulkMappingError(BaseModel):
    index: int
    ina_emp_id: int
    error: str


class BulkMappingOut(BaseModel):
    created: list[MappingOut] = Field(default_factory=list)
    errors: list[BulkMappingError] = Field(default_factory=list)
