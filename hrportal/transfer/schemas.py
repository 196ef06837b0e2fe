"""Transfer Pydantic schemas."""

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrportal.common.constants import TransferStatus
from hrportal.core_hr.schemas import (
    BranchBrief,
    DepartmentBrief,
    DesignationBrief,
    EmployeeBrief,
)


class TransferCreate(BaseModel):
    """Source placement fields default to the employee's current placement."""

    employee_id: uuid.UUID
    from_branch_id: Optional[uuid.UUID] = None
    to_branch_id: uuid.UUID
    from_department_id: Optional[uuid.UUID] = None
    to_department_id: Optional[uuid.UUID] = None
    from_designation_id: Optional[uuid.UUID] = None
    to_designation_id: Optional[uuid.UUID] = None
    effective_date: dt.date
    transfer_order_no: Optional[str] = Field(None, max_length=50)
    reason: str = Field(..., min_length=1)


class TransferUpdate(BaseModel):
    to_branch_id: Optional[uuid.UUID] = None
    to_department_id: Optional[uuid.UUID] = None
    to_designation_id: Optional[uuid.UUID] = None
    effective_date: Optional[dt.date] = None
    transfer_order_no: Optional[str] = Field(None, max_length=50)
    reason: Optional[str] = Field(None, min_length=1)


class TransferReject(BaseModel):
    reason: str = Field(..., min_length=1)


class TransferOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    from_branch_id: uuid.UUID
    to_branch_id: uuid.UUID
    from_department_id: Optional[uuid.UUID] = None
    to_department_id: Optional[uuid.UUID] = None
    from_designation_id: Optional[uuid.UUID] = None
    to_designation_id: Optional[uuid.UUID] = None
    effective_date: dt.date
    transfer_order_no: Optional[str] = None
    reason: Optional[str] = None
    status: TransferStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[dt.datetime] = None
    rejection_reason: Optional[str] = None
    employee: Optional[EmployeeBrief] = None
    from_branch: Optional[BranchBrief] = None
    to_branch: Optional[BranchBrief] = None
    from_department: Optional[DepartmentBrief] = None
    to_department: Optional[DepartmentBrief] = None
    from_designation: Optional[DesignationBrief] = None
    to_designation: Optional[DesignationBrief] = None
    created_at: dt.datetime


class TransferReportSummary(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    completed: int = 0
    cancelled: int = 0
