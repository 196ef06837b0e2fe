"""Leave Pydantic schemas — types, balances, applications."""

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrportal.common.constants import LeaveStatus
from hrportal.core_hr.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    days_allowed: int = Field(..., ge=0)
    is_paid: bool = True
    carry_forward: bool = False
    description: Optional[str] = None


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    days_allowed: Optional[int] = Field(None, ge=0)
    is_paid: Optional[bool] = None
    carry_forward: Optional[bool] = None
    description: Optional[str] = None


class LeaveTypeBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    is_paid: bool


class LeaveTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    days_allowed: int
    is_paid: bool
    carry_forward: bool
    description: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime


# ═════════════════════════════════════════════════════════════════════
# Leave balances
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceCreate(BaseModel):
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    allocated: int = Field(..., ge=0)
    used: int = Field(0, ge=0)


class LeaveBalanceUpdate(BaseModel):
    allocated: Optional[int] = Field(None, ge=0)
    used: Optional[int] = Field(None, ge=0)


class LeaveBalanceBulk(BaseModel):
    """Allocate one leave type to many employees (default: every active employee)."""

    leave_type_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    allocated: int = Field(..., ge=0)
    employee_ids: Optional[list[uuid.UUID]] = None


class LeaveBalanceRollover(BaseModel):
    from_year: int = Field(..., ge=2000, le=2100)
    to_year: int = Field(..., ge=2000, le=2100)

    @model_validator(mode="after")
    def _check_years(self):
        if self.to_year <= self.from_year:
            raise ValueError("to_year must be greater than from_year")
        return self


class LeaveBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    allocated: int
    used: int
    remaining: int
    employee: Optional[EmployeeBrief] = None
    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Leave applications
# ═════════════════════════════════════════════════════════════════════


class LeaveApply(BaseModel):
    leave_type_id: uuid.UUID
    start_date: dt.date
    end_date: dt.date
    reason: str = Field(..., min_length=1)
    employee_id: Optional[uuid.UUID] = Field(
        None, description="Apply on behalf of another employee (needs leaves.create)",
    )
    auto_approve: bool = False

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class LeaveReject(BaseModel):
    rejection_reason: str = Field(..., min_length=1)


class LeaveApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: dt.date
    end_date: dt.date
    days: int
    reason: str
    status: LeaveStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[dt.datetime] = None
    rejection_reason: Optional[str] = None
    employee: Optional[EmployeeBrief] = None
    leave_type: Optional[LeaveTypeBrief] = None
    created_at: dt.datetime


class LeaveReportSummary(BaseModel):
    total: int = 0
    approved: int = 0
    rejected: int = 0
    pending: int = 0
    cancelled: int = 0
    total_days: int = 0
