"""Identity mapping and match-suggestion endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hawki.db.session import get_db
from hawki.models.enums import MatchTarget
from hawki.schemas.employee import BulkMappingOut, BulkMappingRequest, MappingCreate, MappingOut
from hawki.services.identity import (
    MappingPair,
    auto_suggest,
    bulk_create_mappings,
    create_mapping,
    remove_mapping,
    suggest_matches,
)

router = APIRouter()


@router.get("/auto-suggestions")
def employee_auto_suggestions(
    target: MatchTarget = Query(default=MatchTarget.bamboohr),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return {"success": True, "data": auto_suggest(db, target=target)}


@router.get("/{ina_employee_id}/suggestions")
def employee_suggestions(
    ina_employee_id: int,
    target: MatchTarget = Query(default=MatchTarget.bamboohr),
    min_score: float | None = Query(default=None, ge=0, le=100),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    suggestions = suggest_matches(db, ina_employee_id, target=target, min_score=min_score)
    return {"success": True, "data": [item.to_dict() for item in suggestions]}


@router.post("/mappings")
def employee_create_mapping(payload: MappingCreate, db: Session = Depends(get_db)) -> dict[str, Any]:
    mapping = create_mapping(
        db,
        payload.ina_emp_id,
        bamboohr_id=payload.bamboohr_id,
        ado_user_id=payload.ado_user_id,
    )
    return {"success": True, "data": MappingOut.model_validate(mapping).model_dump()}


@router.post("/mappings/bulk")
def employee_bulk_mappings(payload: BulkMappingRequest, db: Session = Depends(get_db)) -> dict[str, Any]:
    pairs = [
        MappingPair(ina_emp_id=item.ina_emp_id, bamboohr_id=item.bamboohr_id, ado_user_id=item.ado_user_id)
        for item in payload.mappings
    ]
    result = bulk_create_mappings(db, pairs)
    body = BulkMappingOut(
        created=[MappingOut.model_validate(mapping) for mapping in result.created],
        errors=result.errors,
    )
    return {"success": not result.errors, "data": body.model_dump()}


@router.delete("/{ina_employee_id}/mapping")
def employee_remove_mapping(
    ina_employee_id: int,
    target: MatchTarget | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    remove_mapping(db, ina_employee_id, target=target)
    return {"success": True, "data": None, "message": "Employee mapping removed"}
