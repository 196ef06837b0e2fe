"""Attendance Pydantic schemas."""

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hrportal.common.constants import AttendanceStatus
from hrportal.core_hr.schemas import BranchBrief, EmployeeBrief


class AttendanceCreate(BaseModel):
    employee_id: uuid.UUID
    date: dt.date
    check_in: Optional[dt.time] = None
    check_out: Optional[dt.time] = None
    status: AttendanceStatus
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self):
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise ValueError("check_out must not be earlier than check_in")
        return self


class AttendanceUpdate(BaseModel):
    """Employee and date are fixed once recorded."""

    check_in: Optional[dt.time] = None
    check_out: Optional[dt.time] = None
    status: Optional[AttendanceStatus] = None
    remarks: Optional[str] = None


class AttendanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    date: dt.date
    check_in: Optional[dt.time] = None
    check_out: Optional[dt.time] = None
    status: AttendanceStatus
    remarks: Optional[str] = None
    employee: Optional[EmployeeBrief] = None
    created_at: dt.datetime
    updated_at: dt.datetime


class AttendanceSummary(BaseModel):
    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    half_day: int = 0
    leave: int = 0


class MonthlyRow(BaseModel):
    employee: EmployeeBrief
    days: dict[int, AttendanceStatus] = Field(
        default_factory=dict, description="Day of month → recorded status",
    )


# ── Settings ────────────────────────────────────────────────────────

def _check_weekend_days(days: Optional[list[int]]) -> Optional[list[int]]:
    if days is None:
        return None
    if any(d < 0 or d > 6 for d in days):
        raise ValueError("weekend days must be between 0 (Sunday) and 6 (Saturday)")
    return sorted(set(days))


class AttendanceSettingCreate(BaseModel):
    branch_id: uuid.UUID
    work_start_time: dt.time
    work_end_time: dt.time
    late_threshold_minutes: int = Field(15, ge=0)
    half_day_hours: int = Field(4, ge=1)
    weekend_days: list[int] = Field(..., description="0 = Sunday .. 6 = Saturday")

    @field_validator("weekend_days")
    @classmethod
    def _weekdays(cls, v: list[int]) -> list[int]:
        return _check_weekend_days(v)

    @model_validator(mode="after")
    def _check_hours(self):
        if self.work_end_time <= self.work_start_time:
            raise ValueError("work_end_time must be after work_start_time")
        return self


class AttendanceSettingUpdate(BaseModel):
    branch_id: Optional[uuid.UUID] = None
    work_start_time: Optional[dt.time] = None
    work_end_time: Optional[dt.time] = None
    late_threshold_minutes: Optional[int] = Field(None, ge=0)
    half_day_hours: Optional[int] = Field(None, ge=1)
    weekend_days: Optional[list[int]] = None

    @field_validator("weekend_days")
    @classmethod
    def _weekdays(cls, v: Optional[list[int]]) -> Optional[list[int]]:
        return _check_weekend_days(v)


class AttendanceSettingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    branch_id: uuid.UUID
    work_start_time: dt.time
    work_end_time: dt.time
    late_threshold_minutes: int
    half_day_hours: int
    weekend_days: list[int]
    branch: Optional[BranchBrief] = None
    created_at: dt.datetime
    updated_at: dt.datetime
