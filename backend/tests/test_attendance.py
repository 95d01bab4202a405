from __future__ import annotations

import datetime as dt

import pytest

from hawki.core.exceptions import BadRequestError, NotFoundError
from hawki.models.employee import (
    BambooHREmployee,
    BambooHRTimeOff,
    EmployeeAttendance,
    EmployeeMapping,
    InatechEmployee,
)
from hawki.services.attendance import attendance_with_time_off, resolve_period


def _seed(db) -> None:  # noqa: ANN001
    db.add_all(
        [
            InatechEmployee(id=5, ina_emp_id="INA005", employee_name="Jane Doe"),
            InatechEmployee(id=6, ina_emp_id="INA006", employee_name="John Smith"),
            BambooHREmployee(id="9", first_name="Jane", last_name="Doe"),
        ]
    )
    db.flush()
    db.add_all(
        [
            EmployeeMapping(ina_emp_id=5, bamboohr_id="9"),
            EmployeeAttendance(
                ina_employee_id=5,
                attendance_date=dt.date(2026, 3, 2),
                in_time=dt.time(9, 0),
                out_time=dt.time(17, 30),
                working_hours=8.5,
            ),
            # Clocked in only: not a full day of presence.
            EmployeeAttendance(ina_employee_id=5, attendance_date=dt.date(2026, 3, 3), in_time=dt.time(9, 5)),
            BambooHRTimeOff(
                id="r1",
                employee_id="9",
                type_id="78",
                type_name="Vacation",
                status="approved",
                start_date=dt.date(2026, 3, 3),
                end_date=dt.date(2026, 3, 4),
            ),
            BambooHRTimeOff(
                id="r2",
                employee_id="9",
                type_id="80",
                type_name="Sick",
                status="denied",
                start_date=dt.date(2026, 3, 5),
                end_date=dt.date(2026, 3, 5),
            ),
        ]
    )
    db.commit()


def test_each_day_gets_one_status(db_session) -> None:
    _seed(db_session)

    days = attendance_with_time_off(db_session, 5, dt.date(2026, 3, 2), dt.date(2026, 3, 5))

    assert [(day["attendance_date"], day["status"]) for day in days] == [
        ("2026-03-02", "present"),
        ("2026-03-03", "time_off"),
        ("2026-03-04", "time_off"),
        ("2026-03-05", "no_track"),
    ]
    present = days[0]
    assert present["in_time"] == "09:00:00"
    assert present["out_time"] == "17:30:00"
    assert present["working_hours"] == 8.5
    assert present["time_off_type"] is None
    assert days[1]["in_time"] == "09:05:00"
    assert days[1]["time_off_type"] == "78"
    assert days[2]["time_off_type_name"] == "Vacation"
    assert days[2]["id"] is None
    assert all(day["employee_name"] == "Jane Doe" for day in days)


def test_unmapped_employee_never_shows_time_off(db_session) -> None:
    _seed(db_session)
    days = attendance_with_time_off(db_session, 6, dt.date(2026, 3, 3), dt.date(2026, 3, 4), view="week")
    assert [day["status"] for day in days] == ["no_track", "no_track"]


def test_month_view_covers_the_start_month(db_session) -> None:
    _seed(db_session)
    days = attendance_with_time_off(db_session, 5, dt.date(2026, 2, 10), view="month")
    assert len(days) == 28
    assert days[0]["attendance_date"] == "2026-02-01"
    assert days[-1]["attendance_date"] == "2026-02-28"


def test_period_validation() -> None:
    assert resolve_period(dt.date(2026, 3, 2), None, "day") == (dt.date(2026, 3, 2), dt.date(2026, 3, 2))
    with pytest.raises(BadRequestError):
        resolve_period(dt.date(2026, 3, 2), dt.date(2026, 3, 1), "day")
    with pytest.raises(BadRequestError):
        resolve_period(dt.date(2026, 3, 2), None, "year")
    with pytest.raises(BadRequestError):
        resolve_period(dt.date(2025, 1, 1), dt.date(2026, 3, 1), "week")


def test_unknown_employee(db_session) -> None:
    with pytest.raises(NotFoundError):
        attendance_with_time_off(db_session, 404, dt.date(2026, 3, 2))
