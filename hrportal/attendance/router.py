"""Attendance router.

Routes:
    /attendance             — Daily register, record attendance
    /attendance/monthly     — Month grid per employee
    /attendance/report      — Date-range report with status summary
    /attendance/settings    — Per-branch working hours (attendance.admin)
    /attendance/{id}        — Get, update, delete a record
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.attendance.schemas import (
    AttendanceCreate,
    AttendanceOut,
    AttendanceSettingCreate,
    AttendanceSettingOut,
    AttendanceSettingUpdate,
    AttendanceUpdate,
)
from hrportal.attendance.service import ATTENDANCE_ADMIN, AttendanceService, AttendanceSettingService
from hrportal.auth.dependencies import require_permission, scope_for
from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import AttendanceStatus, RecordType
from hrportal.common.pagination import PaginationParams
from hrportal.database import get_db

router = APIRouter(prefix="", tags=["attendance"])

_attendance_scope = scope_for(RecordType.attendance)


def _out(record) -> dict:
    return AttendanceOut.model_validate(record).model_dump(mode="json")


def _setting_out(setting) -> dict:
    return AttendanceSettingOut.model_validate(setting).model_dump(mode="json")


@router.get("")
async def list_attendance(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("attendance.view")),
    scope: Scope = Depends(_attendance_scope),
    pagination: PaginationParams = Depends(),
    day: Optional[date] = Query(None, alias="date", description="Defaults to today"),
    status: Optional[AttendanceStatus] = Query(None),
    branch_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None, description="Search by employee name or code"),
):
    day = day or date.today()
    result = await AttendanceService.list_daily(
        db, pagination, principal, scope,
        day=day, status=status, branch_id=branch_id,
        department_id=department_id, search=search,
    )
    return {
        "data": [_out(a) for a in result.data],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} attendance records for {day.isoformat()}.",
    }


@router.get("/monthly")
async def monthly_attendance(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("attendance.view")),
    scope: Scope = Depends(_attendance_scope),
    pagination: PaginationParams = Depends(),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    search: Optional[str] = Query(None),
):
    today = date.today()
    year = year or today.year
    month = month or today.month
    rows, page = await AttendanceService.monthly(
        db, pagination, principal, scope, year=year, month=month, search=search,
    )
    return {
        "data": {
            "year": year,
            "month": month,
            "rows": [r.model_dump(mode="json") for r in rows],
        },
        "meta": page.meta.model_dump(),
        "message": "Monthly attendance retrieved successfully.",
    }


@router.get("/report")
async def attendance_report(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("attendance.view")),
    scope: Scope = Depends(_attendance_scope),
    pagination: PaginationParams = Depends(),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status: Optional[AttendanceStatus] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
):
    result, summary = await AttendanceService.report(
        db, pagination, principal, scope,
        start_date=start_date, end_date=end_date,
        status=status, employee_id=employee_id,
    )
    return {
        "data": {
            "records": [_out(a) for a in result.data],
            "summary": summary.model_dump(),
        },
        "meta": result.meta.model_dump(),
        "message": "Attendance report generated successfully.",
    }


@router.post("", status_code=201)
async def create_attendance(
    body: AttendanceCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("attendance.create")),
    scope: Scope = Depends(_attendance_scope),
):
    record = await AttendanceService.create_attendance(db, body, principal, scope)
    return {"data": _out(record), "message": "Attendance record created successfully."}


# ── Branch settings (declared before /{attendance_id}) ──────────────

@router.get("/settings")
async def list_settings(
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission(ATTENDANCE_ADMIN)),
):
    settings = await AttendanceSettingService.list_settings(db)
    return {
        "data": [_setting_out(s) for s in settings],
        "message": f"Found {len(settings)} attendance settings.",
    }


@router.post("/settings", status_code=201)
async def create_setting(
    body: AttendanceSettingCreate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission(ATTENDANCE_ADMIN)),
):
    setting = await AttendanceSettingService.create_setting(db, body)
    return {"data": _setting_out(setting), "message": "Attendance settings created successfully."}


@router.get("/settings/{setting_id}")
async def get_setting(
    setting_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission(ATTENDANCE_ADMIN)),
):
    setting = await AttendanceSettingService.get_setting(db, setting_id)
    return {"data": _setting_out(setting), "message": "Attendance settings retrieved successfully."}


@router.put("/settings/{setting_id}")
async def update_setting(
    setting_id: uuid.UUID,
    body: AttendanceSettingUpdate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission(ATTENDANCE_ADMIN)),
):
    setting = await AttendanceSettingService.update_setting(db, setting_id, body)
    return {"data": _setting_out(setting), "message": "Attendance settings updated successfully."}


@router.delete("/settings/{setting_id}")
async def delete_setting(
    setting_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission(ATTENDANCE_ADMIN)),
):
    await AttendanceSettingService.delete_setting(db, setting_id)
    return {"data": {"id": str(setting_id)}, "message": "Attendance settings deleted successfully."}


@router.get("/{attendance_id}")
async def get_attendance(
    attendance_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("attendance.view")),
    scope: Scope = Depends(_attendance_scope),
):
    record = await AttendanceService.get_attendance(db, attendance_id, principal, scope)
    return {"data": _out(record), "message": "Attendance record retrieved successfully."}


@router.put("/{attendance_id}")
async def update_attendance(
    attendance_id: uuid.UUID,
    body: AttendanceUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("attendance.edit")),
    scope: Scope = Depends(_attendance_scope),
):
    record = await AttendanceService.update_attendance(db, attendance_id, body, principal, scope)
    return {"data": _out(record), "message": "Attendance record updated successfully."}


@router.delete("/{attendance_id}")
async def delete_attendance(
    attendance_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_permission("attendance.delete")),
    scope: Scope = Depends(_attendance_scope),
):
    day = await AttendanceService.delete_attendance(db, attendance_id, principal, scope)
    return {"data": {"date": day.isoformat()}, "message": "Attendance record deleted successfully."}
