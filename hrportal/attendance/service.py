"""Attendance service — daily register, monthly grid, range report and branch settings."""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.attendance.models import Attendance, AttendanceSetting
from hrportal.attendance.schemas import (
    AttendanceCreate,
    AttendanceSettingCreate,
    AttendanceSettingUpdate,
    AttendanceSummary,
    AttendanceUpdate,
    MonthlyRow,
)
from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import AttendanceStatus, EmployeeStatus
from hrportal.common.exceptions import ConflictError, ForbiddenException, ValidationException
from hrportal.common.filters import apply_filters, apply_search
from hrportal.common.lookups import ensure_exists, get_or_404
from hrportal.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrportal.common.scoping import apply_scope, can_manage, restrict_visible
from hrportal.core_hr.models import Branch, Employee
from hrportal.core_hr.schemas import EmployeeBrief

logger = logging.getLogger(__name__)

# Holders of this key see and manage every employee's attendance.
ATTENDANCE_ADMIN = "attendance.admin"

_SEARCH_COLUMNS = ["first_name", "last_name", "employee_code"]


def _base_query():
    return select(Attendance).join(Attendance.employee).options(selectinload(Attendance.employee))


class AttendanceService:
    """Async attendance operations, always evaluated for a principal."""

    @staticmethod
    async def list_daily(
        db: AsyncSession,
        pagination: PaginationParams,
        principal: Principal,
        scope: Scope,
        *,
        day: date,
        status: Optional[AttendanceStatus] = None,
        branch_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = _base_query().where(Attendance.date == day).order_by(Employee.first_name)
        query = restrict_visible(query, Attendance, scope, principal, ATTENDANCE_ADMIN)
        query = apply_filters(query, Attendance, {"status": status})
        query = apply_filters(
            query, Employee,
            {"current_branch_id": branch_id, "department_id": department_id},
        )
        query = apply_search(query, Employee, search, _SEARCH_COLUMNS)
        return await paginate(db, query, pagination, model=Attendance)

    @staticmethod
    async def get_attendance(
        db: AsyncSession,
        attendance_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> Attendance:
        record = await get_or_404(
            db, Attendance, attendance_id,
            selectinload(Attendance.employee),
            label="Attendance",
        )
        if not can_manage(principal, scope, record.employee, ATTENDANCE_ADMIN):
            raise ForbiddenException("You do not have permission to access this attendance record.")
        return record

    @staticmethod
    async def create_attendance(
        db: AsyncSession,
        data: AttendanceCreate,
        principal: Principal,
        scope: Scope,
    ) -> Attendance:
        employee = await db.get(Employee, data.employee_id)
        if employee is None:
            raise ValidationException({"employee_id": ["The selected employee is invalid."]})
        if not can_manage(principal, scope, employee, ATTENDANCE_ADMIN):
            raise ForbiddenException(
                "You do not have permission to create attendance records for this employee."
            )

        existing = await db.scalar(
            select(Attendance.id).where(
                Attendance.employee_id == data.employee_id,
                Attendance.date == data.date,
            )
        )
        if existing is not None:
            raise ConflictError("date", data.date.isoformat())

        record = Attendance(**data.model_dump())
        db.add(record)
        await db.flush()
        logger.info(
            "Attendance %s recorded for employee %s on %s",
            record.status.value, record.employee_id, record.date,
        )
        return await AttendanceService.get_attendance(db, record.id, principal, scope)

    @staticmethod
    async def update_attendance(
        db: AsyncSession,
        attendance_id: uuid.UUID,
        data: AttendanceUpdate,
        principal: Principal,
        scope: Scope,
    ) -> Attendance:
        record = await AttendanceService.get_attendance(db, attendance_id, principal, scope)
        changes = data.model_dump(exclude_unset=True)
        if "status" in changes and changes["status"] is None:
            raise ValidationException({"status": ["The status field is required."]})
        check_in = changes.get("check_in", record.check_in)
        check_out = changes.get("check_out", record.check_out)
        if check_in and check_out and check_out < check_in:
            raise ValidationException(
                {"check_out": ["The check out time must not be earlier than check in."]}
            )
        for field, value in changes.items():
            setattr(record, field, value)
        await db.flush()
        return await AttendanceService.get_attendance(db, attendance_id, principal, scope)

    @staticmethod
    async def delete_attendance(
        db: AsyncSession,
        attendance_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> date:
        record = await AttendanceService.get_attendance(db, attendance_id, principal, scope)
        day = record.date
        await db.delete(record)
        await db.flush()
        return day

    # ── Monthly grid ────────────────────────────────────────────────

    @staticmethod
    async def monthly(
        db: AsyncSession,
        pagination: PaginationParams,
        principal: Principal,
        scope: Scope,
        *,
        year: int,
        month: int,
        search: Optional[str] = None,
    ) -> tuple[list[MonthlyRow], PaginatedResponse]:
        """One row per visible employee with the statuses recorded in the month."""
        query = (
            select(Employee)
            .where(Employee.status == EmployeeStatus.active)
            .order_by(Employee.first_name, Employee.last_name)
        )
        if not scope.is_unrestricted:
            query = apply_scope(query, Employee, scope)
        elif not principal.can(ATTENDANCE_ADMIN):
            query = query.where(Employee.id == principal.employee_id)
        query = apply_search(query, Employee, search, _SEARCH_COLUMNS)
        page = await paginate(db, query, pagination, model=Employee)

        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
        ids = [e.id for e in page.data]
        rows = {e.id: MonthlyRow(employee=EmployeeBrief.model_validate(e)) for e in page.data}
        if ids:
            result = await db.execute(
                select(Attendance.employee_id, Attendance.date, Attendance.status).where(
                    Attendance.employee_id.in_(ids),
                    Attendance.date.between(start, end),
                )
            )
            for employee_id, day, status in result.all():
                rows[employee_id].days[day.day] = status
        return list(rows.values()), page

    # ── Report ──────────────────────────────────────────────────────

    @staticmethod
    async def report(
        db: AsyncSession,
        pagination: PaginationParams,
        principal: Principal,
        scope: Scope,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AttendanceStatus] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> tuple[PaginatedResponse, AttendanceSummary]:
        """Records between two dates (default: the last 30 days) plus status totals."""
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=30)
        if start_date > end_date:
            raise ValidationException(
                {"end_date": ["The end date must be a date after or equal to start date."]}
            )

        query = select(Attendance).join(Attendance.employee).where(
            Attendance.date.between(start_date, end_date)
        )
        query = restrict_visible(query, Attendance, scope, principal, ATTENDANCE_ADMIN)
        query = apply_filters(query, Attendance, {"status": status, "employee_id": employee_id})

        filtered = query.subquery()
        counts = await db.execute(
            select(filtered.c.status, func.count()).group_by(filtered.c.status)
        )
        summary = AttendanceSummary()
        for st, n in counts.all():
            setattr(summary, AttendanceStatus(st).value, n)
            summary.total += n

        query = query.options(selectinload(Attendance.employee)).order_by(
            Attendance.date.desc(), Employee.first_name,
        )
        return await paginate(db, query, pagination, model=Attendance), summary


class AttendanceSettingService:
    """Per-branch working hours. At most one row per branch."""

    @staticmethod
    async def list_settings(db: AsyncSession) -> list[AttendanceSetting]:
        result = await db.execute(
            select(AttendanceSetting)
            .join(AttendanceSetting.branch)
            .options(selectinload(AttendanceSetting.branch))
            .order_by(Branch.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_setting(db: AsyncSession, setting_id: uuid.UUID) -> AttendanceSetting:
        return await get_or_404(
            db, AttendanceSetting, setting_id,
            selectinload(AttendanceSetting.branch),
            label="Attendance setting",
        )

    @staticmethod
    async def _ensure_branch_free(
        db: AsyncSession,
        branch_id: uuid.UUID,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        await ensure_exists(db, Branch, branch_id, "branch_id")
        query = select(AttendanceSetting.id).where(AttendanceSetting.branch_id == branch_id)
        if exclude_id is not None:
            query = query.where(AttendanceSetting.id != exclude_id)
        if await db.scalar(query) is not None:
            raise ConflictError("branch_id", str(branch_id))

    @staticmethod
    async def create_setting(db: AsyncSession, data: AttendanceSettingCreate) -> AttendanceSetting:
        await AttendanceSettingService._ensure_branch_free(db, data.branch_id)
        setting = AttendanceSetting(**data.model_dump())
        db.add(setting)
        await db.flush()
        logger.info("Attendance settings created for branch %s", setting.branch_id)
        return await AttendanceSettingService.get_setting(db, setting.id)

    @staticmethod
    async def update_setting(
        db: AsyncSession,
        setting_id: uuid.UUID,
        data: AttendanceSettingUpdate,
    ) -> AttendanceSetting:
        setting = await AttendanceSettingService.get_setting(db, setting_id)
        changes = data.model_dump(exclude_unset=True)

        missing = [k for k, v in changes.items() if v is None]
        if missing:
            raise ValidationException(
                {k: [f"The {k.replace('_', ' ')} field is required."] for k in missing}
            )
        if "branch_id" in changes and changes["branch_id"] != setting.branch_id:
            await AttendanceSettingService._ensure_branch_free(db, changes["branch_id"], setting.id)

        start = changes.get("work_start_time", setting.work_start_time)
        end = changes.get("work_end_time", setting.work_end_time)
        if end <= start:
            raise ValidationException(
                {"work_end_time": ["The work end time must be after the work start time."]}
            )

        for field, value in changes.items():
            setattr(setting, field, value)
        await db.flush()
        return await AttendanceSettingService.get_setting(db, setting_id)

    @staticmethod
    async def delete_setting(db: AsyncSession, setting_id: uuid.UUID) -> None:
        setting = await AttendanceSettingService.get_setting(db, setting_id)
        await db.delete(setting)
        await db.flush()
        logger.info("Attendance settings %s deleted", setting_id)
