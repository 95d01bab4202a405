"""Attendance reconciled with approved time off."""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hawki.db.session import get_db
from hawki.services.attendance import attendance_with_time_off

router = APIRouter()


@router.get("/{ina_employee_id}")
def employee_attendance(
    ina_employee_id: int,
    start: dt.date = Query(...),
    end: dt.date | None = Query(default=None),
    view: Literal["day", "week", "month"] = Query(default="day"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return {"success": True, "data": attendance_with_time_off(db, ina_employee_id, start, end, view=view)}
