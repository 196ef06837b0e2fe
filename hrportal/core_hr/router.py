"""Core HR router — Branch, Department, Designation, Employee API endpoints.

Routes:
    /branches               — List, create branches
    /branches/{id}          — Get, update, delete branch
    /departments            — List, create departments
    /departments/{id}       — Get, update, delete department
    /designations           — List, create designations
    /designations/{id}      — Get, update, delete designation
    /employees              — List, create employees
    /employees/org-chart    — Reporting-line hierarchy
    /employees/report       — Filtered list with status and gender summary
    /employees/{id}         — Get, update, delete employee
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import require_permission, scope_for
from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import EmployeeStatus, GenderType, RecordType
from hrportal.common.pagination import PaginationParams
from hrportal.core_hr.schemas import (
    BranchCreate,
    BranchResponse,
    BranchUpdate,
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    DesignationCreate,
    DesignationResponse,
    DesignationUpdate,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeListItem,
    EmployeeUpdate,
)
from hrportal.core_hr.service import (
    BranchService,
    DepartmentService,
    DesignationService,
    EmployeeService,
)
from hrportal.database import get_db


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

branches_router = APIRouter(prefix="", tags=["branches"])
departments_router = APIRouter(prefix="", tags=["departments"])
designations_router = APIRouter(prefix="", tags=["designations"])
employees_router = APIRouter(prefix="", tags=["employees"])

_employee_scope = scope_for(RecordType.employee)


# ═════════════════════════════════════════════════════════════════════
# Branch Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /branches — List branches ───────────────────────────────────

@branches_router.get("")
async def list_branches(
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("branches.view")),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name or branch code"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
):
    result = await BranchService.list_branches(
        db, pagination, search=search, is_active=is_active,
    )
    return {
        "data": [BranchResponse.model_validate(b).model_dump(mode="json") for b in result.data],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} branches.",
    }


# ── POST /branches — Create branch ──────────────────────────────────

@branches_router.post("", status_code=201)
async def create_branch(
    body: BranchCreate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("branches.create")),
):
    branch = await BranchService.create_branch(db, body)
    return {
        "data": BranchResponse.model_validate(branch).model_dump(mode="json"),
        "message": "Branch created successfully.",
    }


# ── GET /branches/{id} — Branch detail with employees ──────────────

@branches_router.get("/{branch_id}")
async def get_branch(
    branch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("branches.view")),
    pagination: PaginationParams = Depends(),
):
    branch = await BranchService.get_branch(db, branch_id)
    employees = await EmployeeService.list_employees(db, pagination, branch_id=branch_id)
    resp = BranchResponse.model_validate(branch)
    resp.employee_count = employees.meta.total
    return {
        "data": {
            **resp.model_dump(mode="json"),
            "employees": [
                EmployeeListItem.model_validate(e).model_dump(mode="json")
                for e in employees.data
            ],
        },
        "meta": employees.meta.model_dump(),
        "message": "Branch retrieved successfully.",
    }


# ── PUT /branches/{id} — Update branch ──────────────────────────────

@branches_router.put("/{branch_id}")
async def update_branch(
    branch_id: uuid.UUID,
    body: BranchUpdate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("branches.edit")),
):
    branch = await BranchService.update_branch(db, branch_id, body)
    return {
        "data": BranchResponse.model_validate(branch).model_dump(mode="json"),
        "message": "Branch updated successfully.",
    }


# ── DELETE /branches/{id} — Delete branch ───────────────────────────

@branches_router.delete("/{branch_id}")
async def delete_branch(
    branch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("branches.delete")),
):
    await BranchService.delete_branch(db, branch_id)
    return {"data": None, "message": "Branch deleted successfully."}


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


async def _department_out(db: AsyncSession, departments) -> list[dict]:
    counts = await DepartmentService.employee_counts(db, [d.id for d in departments])
    out = []
    for dept in departments:
        resp = DepartmentResponse.model_validate(dept)
        resp.employee_count = counts.get(dept.id, 0)
        out.append(resp.model_dump(mode="json"))
    return out


# ── GET /departments — List departments ─────────────────────────────

@departments_router.get("")
async def list_departments(
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("departments.view")),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name or description"),
    branch_id: Optional[uuid.UUID] = Query(None, description="Filter by branch"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
):
    result = await DepartmentService.list_departments(
        db, pagination, search=search, branch_id=branch_id, is_active=is_active,
    )
    return {
        "data": await _department_out(db, result.data),
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} departments.",
    }


# ── POST /departments — Create department ───────────────────────────

@departments_router.post("", status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("departments.create")),
):
    dept = await DepartmentService.create_department(db, body)
    return {
        "data": (await _department_out(db, [dept]))[0],
        "message": "Department created successfully.",
    }


# ── GET /departments/{id} — Department detail ───────────────────────

@departments_router.get("/{department_id}")
async def get_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("departments.view")),
):
    dept = await DepartmentService.get_department(db, department_id)
    return {
        "data": (await _department_out(db, [dept]))[0],
        "message": "Department retrieved successfully.",
    }


# ── PUT /departments/{id} — Update department ───────────────────────

@departments_router.put("/{department_id}")
async def update_department(
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("departments.edit")),
):
    dept = await DepartmentService.update_department(db, department_id, body)
    return {
        "data": (await _department_out(db, [dept]))[0],
        "message": "Department updated successfully.",
    }


# ── DELETE /departments/{id} — Delete department ────────────────────

@departments_router.delete("/{department_id}")
async def delete_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("departments.delete")),
):
    await DepartmentService.delete_department(db, department_id)
    return {"data": None, "message": "Department deleted successfully."}


# ═════════════════════════════════════════════════════════════════════
# Designation Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /designations — List designations (by rank) ─────────────────

@designations_router.get("")
async def list_designations(
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("designations.view")),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name or description"),
    department_id: Optional[uuid.UUID] = Query(None, description="Filter by department"),
):
    result = await DesignationService.list_designations(
        db, pagination, search=search, department_id=department_id,
    )
    return {
        "data": [
            DesignationResponse.model_validate(d).model_dump(mode="json")
            for d in result.data
        ],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} designations.",
    }


# ── POST /designations — Create designation ─────────────────────────

@designations_router.post("", status_code=201)
async def create_designation(
    body: DesignationCreate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("designations.create")),
):
    designation = await DesignationService.create_designation(db, body)
    return {
        "data": DesignationResponse.model_validate(designation).model_dump(mode="json"),
        "message": "Designation created successfully.",
    }


# ── GET /designations/{id} — Designation detail ─────────────────────

@designations_router.get("/{designation_id}")
async def get_designation(
    designation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("designations.view")),
):
    designation = await DesignationService.get_designation(db, designation_id)
    return {
        "data": DesignationResponse.model_validate(designation).model_dump(mode="json"),
        "message": "Designation retrieved successfully.",
    }


# ── PUT /designations/{id} — Update designation ─────────────────────

@designations_router.put("/{designation_id}")
async def update_designation(
    designation_id: uuid.UUID,
    body: DesignationUpdate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("designations.edit")),
):
    designation = await DesignationService.update_designation(db, designation_id, body)
    return {
        "data": DesignationResponse.model_validate(designation).model_dump(mode="json"),
        "message": "Designation updated successfully.",
    }


# ── DELETE /designations/{id} — Delete designation ──────────────────

@designations_router.delete("/{designation_id}")
async def delete_designation(
    designation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("designations.delete")),
):
    await DesignationService.delete_designation(db, designation_id)
    return {"data": None, "message": "Designation deleted successfully."}


# ═════════════════════════════════════════════════════════════════════
# Employee Endpoints
# ═════════════════════════════════════════════════════════════════════


async def _employee_detail(db: AsyncSession, employee) -> dict:
    detail = EmployeeDetail.model_validate(employee)
    detail.direct_reports_count = await EmployeeService.direct_reports_count(db, employee.id)
    return detail.model_dump(mode="json")


# ── GET /employees — List employees ─────────────────────────────────

@employees_router.get("")
async def list_employees(
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("employees.view")),
    scope: Scope = Depends(_employee_scope),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, email, or employee code"),
    department_id: Optional[uuid.UUID] = Query(None, description="Filter by department"),
    branch_id: Optional[uuid.UUID] = Query(None, description="Filter by current branch"),
    designation_id: Optional[uuid.UUID] = Query(None, description="Filter by designation"),
    status: Optional[EmployeeStatus] = Query(None, description="Filter by status"),
):
    """List employees visible to the caller's branch/department scope."""
    result = await EmployeeService.list_employees(
        db,
        pagination,
        scope=scope,
        search=search,
        department_id=department_id,
        branch_id=branch_id,
        designation_id=designation_id,
        status=status,
    )
    return {
        "data": [
            EmployeeListItem.model_validate(emp).model_dump(mode="json")
            for emp in result.data
        ],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} employees.",
    }


# ── GET /employees/org-chart — Reporting hierarchy ─────────────────
# NOTE: This MUST be defined before /employees/{employee_id} to avoid
# path parameter conflict.

@employees_router.get("/org-chart")
async def get_org_chart(
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("employees.view")),
    root_id: Optional[uuid.UUID] = Query(None, description="Start from this employee; omit for full tree"),
    max_depth: int = Query(5, ge=1, le=10, description="Maximum tree depth"),
):
    nodes = await EmployeeService.build_org_chart(db, root_id, max_depth=max_depth)
    return {
        "data": [node.model_dump(mode="json") for node in nodes],
        "message": "Organisation chart retrieved successfully.",
    }


# ── GET /employees/report — Filtered list with summary ─────────────

@employees_router.get("/report")
async def employee_report(
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("employees.view", "reports.view")),
    scope: Scope = Depends(_employee_scope),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, email, or employee code"),
    branch_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    designation_id: Optional[uuid.UUID] = Query(None),
    status: Optional[EmployeeStatus] = Query(None),
    gender: Optional[GenderType] = Query(None),
    joined_from: Optional[date] = Query(None, description="Joining date on or after"),
    joined_to: Optional[date] = Query(None, description="Joining date on or before"),
):
    result, summary = await EmployeeService.report(
        db,
        pagination,
        scope=scope,
        search=search,
        branch_id=branch_id,
        department_id=department_id,
        designation_id=designation_id,
        status=status,
        gender=gender,
        joined_from=joined_from,
        joined_to=joined_to,
    )
    return {
        "data": {
            "employees": [
                EmployeeListItem.model_validate(emp).model_dump(mode="json")
                for emp in result.data
            ],
            "summary": summary.model_dump(),
        },
        "meta": result.meta.model_dump(),
        "message": "Employee report generated successfully.",
    }


# ── POST /employees — Create employee ──────────────────────────────

@employees_router.post("", status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("employees.create")),
    scope: Scope = Depends(_employee_scope),
):
    employee = await EmployeeService.create_employee(db, body, scope=scope)
    return {
        "data": await _employee_detail(db, employee),
        "message": "Employee created successfully.",
    }


# ── GET /employees/{id} — Employee profile ─────────────────────────

@employees_router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("employees.view")),
    scope: Scope = Depends(_employee_scope),
):
    employee = await EmployeeService.get_employee(db, employee_id, scope=scope)
    return {
        "data": await _employee_detail(db, employee),
        "message": "Employee retrieved successfully.",
    }


# ── PUT /employees/{id} — Update employee ──────────────────────────

@employees_router.put("/{employee_id}")
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("employees.edit")),
    scope: Scope = Depends(_employee_scope),
):
    employee = await EmployeeService.update_employee(db, employee_id, body, scope=scope)
    return {
        "data": await _employee_detail(db, employee),
        "message": "Employee updated successfully.",
    }


# ── DELETE /employees/{id} — Delete employee ───────────────────────

@employees_router.delete("/{employee_id}")
async def delete_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("employees.delete")),
    scope: Scope = Depends(_employee_scope),
):
    await EmployeeService.delete_employee(db, employee_id, scope=scope)
    return {"data": None, "message": "Employee deleted successfully."}
