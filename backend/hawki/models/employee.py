"""Employee records from the internal roster and BambooHR, plus identity mappings."""

from __future__ import annotations

import datetime as dt

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hawki.db.base import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class InatechEmployee(Base):
    __tablename__ = "inatech_employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ina_emp_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class BambooHREmployee(Base):
    __tablename__ = "bamboohr_employees"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    preferred_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    division: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    last_sync_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def full_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or (self.display_name or "")


class BambooHRTimeOff(Base):
    __tablename__ = "bamboohr_time_off"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    employee_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    type_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    type_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="requested", nullable=False, index=True)
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    unit: Mapped[str | None] = mapped_column(String(16), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_sync_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class EmployeeMapping(Base):
    __tablename__ = "employee_mapping"
    __table_args__ = (
        UniqueConstraint("ina_emp_id", name="uq_employee_mapping_ina_emp_id"),
        UniqueConstraint("bamboohr_id", name="uq_employee_mapping_bamboohr_id"),
        UniqueConstraint("ado_user_id", name="uq_employee_mapping_ado_user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ina_emp_id: Mapped[int] = mapped_column(ForeignKey("inatech_employees.id", ondelete="CASCADE"), nullable=False)
    bamboohr_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    ado_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class EmployeeAttendance(Base):
    __tablename__ = "employee_attendance"
    __table_args__ = (
        UniqueConstraint("ina_employee_id", "attendance_date", name="uq_employee_attendance_employee_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ina_employee_id: Mapped[int] = mapped_column(
        ForeignKey("inatech_employees.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attendance_date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    in_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    out_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    working_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
