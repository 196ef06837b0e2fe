"""Leave router — types, balances, applications.

Routes:
    /leave/types                        — List, create leave types
    /leave/types/{id}                   — Get, update, delete leave type
    /leave/balances                     — List, allocate balances
    /leave/balances/bulk                — Allocate one type to many employees
    /leave/balances/rollover            — Open next year's balances
    /leave/balances/{id}                — Get, update a balance
    /leave/applications                 — List, apply
    /leave/applications/report          — Date-range report with summary
    /leave/applications/{id}            — Get an application
    /leave/applications/{id}/approve    — Approve (leaves.approve)
    /leave/applications/{id}/reject     — Reject with reason (leaves.approve)
    /leave/applications/{id}/cancel     — Cancel a pending application
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import get_current_user, require_permission, scope_for
from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import LeaveStatus, RecordType
from hrportal.common.pagination import PaginationParams
from hrportal.database import get_db
from hrportal.leave.schemas import (
    LeaveApplicationOut,
    LeaveApply,
    LeaveBalanceBulk,
    LeaveBalanceCreate,
    LeaveBalanceOut,
    LeaveBalanceRollover,
    LeaveBalanceUpdate,
    LeaveReject,
    LeaveTypeCreate,
    LeaveTypeOut,
    LeaveTypeUpdate,
)
from hrportal.leave.service import (
    LeaveApplicationService,
    LeaveBalanceService,
    LeaveTypeService,
)

router = APIRouter(prefix="", tags=["leave"])

_leave_scope = scope_for(RecordType.leave)


def _type_out(leave_type) -> dict:
    return LeaveTypeOut.model_validate(leave_type).model_dump(mode="json")


def _balance_out(balance) -> dict:
    return LeaveBalanceOut.model_validate(balance).model_dump(mode="json")


def _application_out(application) -> dict:
    return LeaveApplicationOut.model_validate(application).model_dump(mode="json")


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════


@router.get("/types")
async def list_leave_types(
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.view")),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name"),
):
    result = await LeaveTypeService.list_types(db, pagination, search=search)
    return {
        "data": [_type_out(t) for t in result.data],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} leave types.",
    }


@router.post("/types", status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.create")),
):
    leave_type = await LeaveTypeService.create_type(db, body)
    return {"data": _type_out(leave_type), "message": "Leave type created successfully."}


@router.get("/types/{leave_type_id}")
async def get_leave_type(
    leave_type_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.view")),
):
    leave_type = await LeaveTypeService.get_type(db, leave_type_id)
    return {"data": _type_out(leave_type), "message": "Leave type retrieved successfully."}


@router.put("/types/{leave_type_id}")
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.edit")),
):
    leave_type = await LeaveTypeService.update_type(db, leave_type_id, body)
    return {"data": _type_out(leave_type), "message": "Leave type updated successfully."}


@router.delete("/types/{leave_type_id}")
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.delete")),
):
    await LeaveTypeService.delete_type(db, leave_type_id)
    return {"data": None, "message": "Leave type deleted successfully."}


# ═════════════════════════════════════════════════════════════════════
# Leave balances
# ═════════════════════════════════════════════════════════════════════


@router.get("/balances")
async def list_leave_balances(
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.view")),
    pagination: PaginationParams = Depends(),
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Defaults to the current year"),
    employee_id: Optional[uuid.UUID] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None, description="Search by employee name or code"),
):
    year = year or date.today().year
    result = await LeaveBalanceService.list_balances(
        db, pagination, year=year, employee_id=employee_id,
        leave_type_id=leave_type_id, department_id=department_id, search=search,
    )
    return {
        "data": [_balance_out(b) for b in result.data],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} leave balances for {year}.",
    }


@router.post("/balances", status_code=201)
async def allocate_leave_balance(
    body: LeaveBalanceCreate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.create")),
):
    balance = await LeaveBalanceService.allocate(db, body)
    return {"data": _balance_out(balance), "message": "Leave balance created successfully."}


@router.post("/balances/bulk", status_code=201)
async def allocate_leave_balances_bulk(
    body: LeaveBalanceBulk,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.create")),
):
    created, skipped = await LeaveBalanceService.allocate_bulk(db, body)
    return {
        "data": {"created": created, "skipped": skipped},
        "message": (
            f"Leave balance allocated successfully for {created} employees. "
            f"Skipped {skipped} employees with existing balances."
        ),
    }


@router.post("/balances/rollover", status_code=201)
async def rollover_leave_balances(
    body: LeaveBalanceRollover,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.create")),
):
    created = await LeaveBalanceService.rollover(db, body)
    return {
        "data": {"created": created},
        "message": f"Created {created} leave balances for year {body.to_year}.",
    }


@router.get("/balances/{balance_id}")
async def get_leave_balance(
    balance_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.view")),
):
    balance = await LeaveBalanceService.get_balance(db, balance_id)
    return {"data": _balance_out(balance), "message": "Leave balance retrieved successfully."}


@router.put("/balances/{balance_id}")
async def update_leave_balance(
    balance_id: uuid.UUID,
    body: LeaveBalanceUpdate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("leaves.edit")),
):
    balance = await LeaveBalanceService.update_balance(db, balance_id, body)
    return {"data": _balance_out(balance), "message": "Leave balance updated successfully."}


# ═════════════════════════════════════════════════════════════════════
# Leave applications
# ═════════════════════════════════════════════════════════════════════


@router.get("/applications")
async def list_leave_applications(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_leave_scope),
    pagination: PaginationParams = Depends(),
    status: Optional[LeaveStatus] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None, description="Start date on or after"),
    to_date: Optional[date] = Query(None, description="End date on or before"),
    search: Optional[str] = Query(None, description="Search by employee name or code"),
):
    result = await LeaveApplicationService.list_applications(
        db, pagination, principal, scope,
        status=status, department_id=department_id, employee_id=employee_id,
        from_date=from_date, to_date=to_date, search=search,
    )
    return {
        "data": [_application_out(a) for a in result.data],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} leave applications.",
    }


@router.post("/applications", status_code=201)
async def apply_for_leave(
    body: LeaveApply,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_leave_scope),
):
    application = await LeaveApplicationService.apply(db, body, principal, scope)
    return {
        "data": _application_out(application),
        "message": f"Leave application submitted successfully for {application.days} day(s).",
    }


@router.get("/applications/report")
async def leave_report(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("leaves.view", "reports.view")),
    scope: Scope = Depends(_leave_scope),
    pagination: PaginationParams = Depends(),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
):
    result, summary = await LeaveApplicationService.report(
        db, pagination, principal, scope,
        start_date=start_date, end_date=end_date, status=status,
        department_id=department_id, leave_type_id=leave_type_id, employee_id=employee_id,
    )
    return {
        "data": {
            "applications": [_application_out(a) for a in result.data],
            "summary": summary.model_dump(),
        },
        "meta": result.meta.model_dump(),
        "message": "Leave report generated successfully.",
    }


@router.get("/applications/{application_id}")
async def get_leave_application(
    application_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_leave_scope),
):
    application = await LeaveApplicationService.get_application(db, application_id, principal, scope)
    return {"data": _application_out(application), "message": "Leave application retrieved successfully."}


@router.post("/applications/{application_id}/approve")
async def approve_leave_application(
    application_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("leaves.approve")),
    scope: Scope = Depends(_leave_scope),
):
    application = await LeaveApplicationService.approve(db, application_id, principal, scope)
    return {"data": _application_out(application), "message": "Leave application approved successfully."}


@router.post("/applications/{application_id}/reject")
async def reject_leave_application(
    application_id: uuid.UUID,
    body: LeaveReject,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("leaves.approve")),
    scope: Scope = Depends(_leave_scope),
):
    application = await LeaveApplicationService.reject(
        db, application_id, body.rejection_reason, principal, scope,
    )
    return {"data": _application_out(application), "message": "Leave application rejected successfully."}


@router.post("/applications/{application_id}/cancel")
async def cancel_leave_application(
    application_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
    scope: Scope = Depends(_leave_scope),
):
    application = await LeaveApplicationService.cancel(db, application_id, principal, scope)
    return {"data": _application_out(application), "message": "Leave application cancelled successfully."}
