"""Daily attendance merged with approved BambooHR time off."""

from __future__ import annotations

import calendar
import datetime as dt
from typing import Any

from sqlalchemy.orm import Session

from hawki.core.exceptions import BadRequestError, NotFoundError
from hawki.models.employee import BambooHRTimeOff, EmployeeAttendance, EmployeeMapping, InatechEmployee
from hawki.models.enums import AttendanceStatus

VIEWS = {"day", "week", "month"}
APPROVED = "approved"
MAX_RANGE_DAYS = 366


def resolve_period(start: dt.date, end: dt.date | None, view: str) -> tuple[dt.date, dt.date]:
    """Day and week views use the range as given; month covers the start date's month."""
    if view not in VIEWS:
        raise BadRequestError(f"Unknown attendance view: {view}", details={"allowed": sorted(VIEWS)})
    if view == "month":
        last_day = calendar.monthrange(start.year, start.month)[1]
        return start.replace(day=1), start.replace(day=last_day)
    finish = end or start
    if finish < start:
        raise BadRequestError("end date must not be before start date")
    if (finish - start).days >= MAX_RANGE_DAYS:
        raise BadRequestError(f"date range is limited to {MAX_RANGE_DAYS} days")
    return start, finish


def _time(value: dt.time | None) -> str | None:
    return value.strftime("%H:%M:%S") if value else None


def attendance_with_time_off(
    db: Session,
    ina_employee_id: int,
    start: dt.date,
    end: dt.date | None = None,
    *,
    view: str = "day",
) -> list[dict[str, Any]]:
    employee = db.get(InatechEmployee, ina_employee_id)
    if employee is None:
        raise NotFoundError("Employee not found", details={"ina_emp_id": ina_employee_id})
    first, last = resolve_period(start, end, view)

    attendance = {
        row.attendance_date: row
        for row in db.query(EmployeeAttendance)
        .filter(
            EmployeeAttendance.ina_employee_id == employee.id,
            EmployeeAttendance.attendance_date >= first,
            EmployeeAttendance.attendance_date <= last,
        )
        .all()
    }

    time_off_by_day: dict[dt.date, BambooHRTimeOff] = {}
    mapping = db.query(EmployeeMapping).filter(EmployeeMapping.ina_emp_id == employee.id).first()
    if mapping is not None and mapping.bamboohr_id:
        requests = (
            db.query(BambooHRTimeOff)
            .filter(
                BambooHRTimeOff.employee_id == mapping.bamboohr_id,
                BambooHRTimeOff.status == APPROVED,
                BambooHRTimeOff.start_date <= last,
                BambooHRTimeOff.end_date >= first,
            )
            .order_by(BambooHRTimeOff.start_date.asc())
            .all()
        )
        for request in requests:
            day = max(request.start_date, first)
            while day <= min(request.end_date, last):
                time_off_by_day[day] = request
                day += dt.timedelta(days=1)

    days: list[dict[str, Any]] = []
    day = first
    while day <= last:
        record = attendance.get(day)
        time_off = time_off_by_day.get(day)
        if record is not None and record.in_time and record.out_time:
            status = AttendanceStatus.present
        elif time_off is not None:
            status = AttendanceStatus.time_off
        else:
            status = AttendanceStatus.no_track
        days.append(
            {
                "id": record.id if record else None,
                "employee_id": employee.id,
                "employee_name": employee.employee_name,
                "attendance_date": day.isoformat(),
                "in_time": _time(record.in_time) if record else None,
                "out_time": _time(record.out_time) if record else None,
                "working_hours": record.working_hours if record else None,
                "status": status.value,
                "time_off_type": time_off.type_id if status == AttendanceStatus.time_off else None,
                "time_off_type_name": (time_off.type_name or "Time Off") if status == AttendanceStatus.time_off else None,
            }
        )
        day += dt.timedelta(days=1)
    return days
