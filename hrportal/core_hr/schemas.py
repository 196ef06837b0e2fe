"""Core HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response / *Detail → response bodies (read)
  - *Brief / *ListItem → compact read representations
"""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from hrportal.common.constants import EmployeeStatus, GenderType


# ═════════════════════════════════════════════════════════════════════
# Branch
# ═════════════════════════════════════════════════════════════════════


class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    branch_code: str = Field(..., min_length=1, max_length=20)
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    head_employee_id: Optional[uuid.UUID] = None
    is_head_office: bool = False
    is_active: bool = True


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    branch_code: Optional[str] = Field(None, min_length=1, max_length=20)
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    head_employee_id: Optional[uuid.UUID] = None
    is_head_office: Optional[bool] = None
    is_active: Optional[bool] = None


class BranchBrief(BaseModel):
    """Minimal branch info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    branch_code: str


class BranchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    branch_code: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    head_employee_id: Optional[uuid.UUID] = None
    is_head_office: bool
    is_active: bool
    employee_count: int = 0
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    branch_id: uuid.UUID
    parent_department_id: Optional[uuid.UUID] = None
    head_employee_id: Optional[uuid.UUID] = None
    is_active: bool = True


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    branch_id: Optional[uuid.UUID] = None
    parent_department_id: Optional[uuid.UUID] = None
    head_employee_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class DepartmentBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class DepartmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    branch_id: uuid.UUID
    parent_department_id: Optional[uuid.UUID] = None
    head_employee_id: Optional[uuid.UUID] = None
    is_active: bool
    branch: Optional[BranchBrief] = None
    parent_department: Optional[DepartmentBrief] = None
    employee_count: int = 0
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Designation
# ═════════════════════════════════════════════════════════════════════


class DesignationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    department_id: uuid.UUID
    rank: int = Field(..., ge=1)


class DesignationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    rank: Optional[int] = Field(None, ge=1)


class DesignationBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    rank: int


class DesignationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    department_id: uuid.UUID
    rank: int
    department: Optional[DepartmentBrief] = None
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    """Request body for creating an employee."""

    employee_code: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    joining_date: date
    address: Optional[str] = None
    nid: Optional[str] = Field(None, max_length=50)
    emergency_contact: Optional[str] = Field(None, max_length=255)
    department_id: uuid.UUID
    designation_id: uuid.UUID
    current_branch_id: uuid.UUID
    reporting_to: Optional[uuid.UUID] = None
    status: EmployeeStatus = EmployeeStatus.active
    basic_salary: Optional[Decimal] = Field(None, ge=0)
    bank_account_details: Optional[dict[str, Any]] = None


class EmployeeUpdate(BaseModel):
    """Partial update — only provided fields are changed."""

    employee_code: Optional[str] = Field(None, min_length=1, max_length=20)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    joining_date: Optional[date] = None
    address: Optional[str] = None
    nid: Optional[str] = Field(None, max_length=50)
    emergency_contact: Optional[str] = Field(None, max_length=255)
    department_id: Optional[uuid.UUID] = None
    designation_id: Optional[uuid.UUID] = None
    current_branch_id: Optional[uuid.UUID] = None
    reporting_to: Optional[uuid.UUID] = None
    status: Optional[EmployeeStatus] = None
    basic_salary: Optional[Decimal] = Field(None, ge=0)
    bank_account_details: Optional[dict[str, Any]] = None


class EmployeeBrief(BaseModel):
    """Compact employee reference embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: str


class EmployeeListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    status: EmployeeStatus
    joining_date: date
    department: Optional[DepartmentBrief] = None
    designation: Optional[DesignationBrief] = None
    branch: Optional[BranchBrief] = None


class EmployeeDetail(EmployeeListItem):
    gender: Optional[GenderType] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    nid: Optional[str] = None
    emergency_contact: Optional[str] = None
    basic_salary: Optional[Decimal] = None
    bank_account_details: Optional[dict[str, Any]] = None
    department_id: uuid.UUID
    designation_id: uuid.UUID
    current_branch_id: uuid.UUID
    reporting_to: Optional[uuid.UUID] = None
    supervisor: Optional[EmployeeBrief] = None
    direct_reports_count: int = 0
    created_at: datetime
    updated_at: datetime


class OrgChartNode(BaseModel):
    """Recursive node for the reporting-line tree."""

    id: uuid.UUID
    employee_code: str
    name: str
    designation: Optional[str] = None
    department: Optional[str] = None
    children: list["OrgChartNode"] = []


class EmployeeReportSummary(BaseModel):
    """Counts over every employee matching the report filters."""

    total: int = 0
    active: int = 0
    inactive: int = 0
    on_leave: int = 0
    terminated: int = 0
    male: int = 0
    female: int = 0
