"""Leave service — types, yearly balances and the application workflow.

Applications move ``pending → approved | rejected | cancelled``. Every move
goes through :func:`hrportal.common.transitions.transition`, so a request
that lost a race gets a 409 instead of silently re-approving.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import EmployeeStatus, LeaveStatus
from hrportal.common.exceptions import (
    ConflictError,
    DependentRecordsError,
    ForbiddenException,
    InvalidTransitionError,
    ValidationException,
)
from hrportal.common.filters import apply_filters, apply_search
from hrportal.common.lookups import count_where, ensure_exists, get_or_404
from hrportal.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrportal.common.scoping import can_manage, restrict_visible
from hrportal.common.transitions import transition
from hrportal.core_hr.models import Employee
from hrportal.leave.models import LeaveApplication, LeaveBalance, LeaveType
from hrportal.leave.schemas import (
    LeaveApply,
    LeaveBalanceBulk,
    LeaveBalanceCreate,
    LeaveBalanceRollover,
    LeaveBalanceUpdate,
    LeaveReportSummary,
    LeaveTypeCreate,
    LeaveTypeUpdate,
)

logger = logging.getLogger(__name__)

_LABEL = "Leave application"
_SEARCH_COLUMNS = ["first_name", "last_name", "employee_code"]


def leave_days(start: date, end: date) -> int:
    """Inclusive calendar-day count: 11 → 14 March is four days."""
    return (end - start).days + 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# LeaveTypeService
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeService:

    @staticmethod
    async def list_types(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(LeaveType).order_by(LeaveType.name)
        query = apply_search(query, LeaveType, search, ["name"])
        return await paginate(db, query, pagination, model=LeaveType)

    @staticmethod
    async def get_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        return await get_or_404(db, LeaveType, leave_type_id, label="Leave type")

    @staticmethod
    async def _check_name(
        db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeaveType.id).where(LeaveType.name == name)
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        if await db.scalar(query) is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def create_type(db: AsyncSession, data: LeaveTypeCreate) -> LeaveType:
        await LeaveTypeService._check_name(db, data.name)
        leave_type = LeaveType(**data.model_dump())
        db.add(leave_type)
        await db.flush()
        return leave_type

    @staticmethod
    async def update_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
    ) -> LeaveType:
        leave_type = await LeaveTypeService.get_type(db, leave_type_id)
        changes = data.model_dump(exclude_unset=True)
        for field in ("name", "days_allowed", "is_paid", "carry_forward"):
            if field in changes and changes[field] is None:
                raise ValidationException({field: [f"The {field.replace('_', ' ')} field is required."]})
        if "name" in changes:
            await LeaveTypeService._check_name(db, changes["name"], exclude_id=leave_type_id)
        for field, value in changes.items():
            setattr(leave_type, field, value)
        await db.flush()
        return leave_type

    @staticmethod
    async def delete_type(db: AsyncSession, leave_type_id: uuid.UUID) -> None:
        leave_type = await LeaveTypeService.get_type(db, leave_type_id)
        if await count_where(db, LeaveApplication, LeaveApplication.leave_type_id == leave_type_id):
            logger.warning("Refused to delete leave type %s: has applications", leave_type_id)
            raise DependentRecordsError("Cannot delete leave type that has applications.")
        if await count_where(db, LeaveBalance, LeaveBalance.leave_type_id == leave_type_id):
            logger.warning("Refused to delete leave type %s: has balances", leave_type_id)
            raise DependentRecordsError("Cannot delete leave type that has balances.")
        await db.delete(leave_type)
        await db.flush()


# ═════════════════════════════════════════════════════════════════════
# LeaveBalanceService
# ═════════════════════════════════════════════════════════════════════


def _balance_options():
    return (selectinload(LeaveBalance.employee), selectinload(LeaveBalance.leave_type))


class LeaveBalanceService:

    @staticmethod
    async def list_balances(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        year: int,
        employee_id: Optional[uuid.UUID] = None,
        leave_type_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = (
            select(LeaveBalance)
            .join(LeaveBalance.employee)
            .options(*_balance_options())
            .where(LeaveBalance.year == year)
            .order_by(Employee.first_name, Employee.last_name)
        )
        query = apply_filters(
            query, LeaveBalance,
            {"employee_id": employee_id, "leave_type_id": leave_type_id},
        )
        query = apply_filters(query, Employee, {"department_id": department_id})
        query = apply_search(query, Employee, search, _SEARCH_COLUMNS)
        return await paginate(db, query, pagination, model=LeaveBalance)

    @staticmethod
    async def get_balance(db: AsyncSession, balance_id: uuid.UUID) -> LeaveBalance:
        return await get_or_404(db, LeaveBalance, balance_id, *_balance_options(), label="Leave balance")

    @staticmethod
    async def _find(
        db: AsyncSession, employee_id: uuid.UUID, leave_type_id: uuid.UUID, year: int,
    ) -> Optional[LeaveBalance]:
        return await db.scalar(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            ).execution_options(populate_existing=True)
        )

    @staticmethod
    async def allocate(db: AsyncSession, data: LeaveBalanceCreate) -> LeaveBalance:
        await ensure_exists(db, Employee, data.employee_id, "employee_id")
        await ensure_exists(db, LeaveType, data.leave_type_id, "leave_type_id")
        if await LeaveBalanceService._find(db, data.employee_id, data.leave_type_id, data.year):
            raise ValidationException({"employee_id": [
                "Leave balance already exists for this employee, leave type, and year."
            ]})
        balance = LeaveBalance(**data.model_dump())
        db.add(balance)
        await db.flush()
        return await LeaveBalanceService.get_balance(db, balance.id)

    @staticmethod
    async def update_balance(
        db: AsyncSession,
        balance_id: uuid.UUID,
        data: LeaveBalanceUpdate,
    ) -> LeaveBalance:
        balance = await LeaveBalanceService.get_balance(db, balance_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                raise ValidationException({field: [f"The {field} field is required."]})
            setattr(balance, field, value)
        await db.flush()
        return await LeaveBalanceService.get_balance(db, balance_id)

    @staticmethod
    async def allocate_bulk(db: AsyncSession, data: LeaveBalanceBulk) -> tuple[int, int]:
        """Allocate to each listed (or every active) employee; existing rows are skipped.

        Returns ``(created, skipped)``.
        """
        await ensure_exists(db, LeaveType, data.leave_type_id, "leave_type_id")
        if data.employee_ids:
            employee_ids = list(dict.fromkeys(data.employee_ids))
            found = set((await db.execute(
                select(Employee.id).where(Employee.id.in_(employee_ids))
            )).scalars())
            missing = [str(e) for e in employee_ids if e not in found]
            if missing:
                raise ValidationException(
                    {"employee_ids": [f"The selected employee {e} is invalid." for e in missing]}
                )
        else:
            employee_ids = list((await db.execute(
                select(Employee.id).where(Employee.status == EmployeeStatus.active)
            )).scalars())

        existing = set((await db.execute(
            select(LeaveBalance.employee_id).where(
                LeaveBalance.leave_type_id == data.leave_type_id,
                LeaveBalance.year == data.year,
            )
        )).scalars())

        created = 0
        for employee_id in employee_ids:
            if employee_id in existing:
                continue
            db.add(LeaveBalance(
                employee_id=employee_id,
                leave_type_id=data.leave_type_id,
                year=data.year,
                allocated=data.allocated,
                used=0,
            ))
            created += 1
        await db.flush()
        skipped = len(employee_ids) - created
        logger.info(
            "Bulk leave allocation for %s: %d created, %d skipped", data.year, created, skipped,
        )
        return created, skipped

    @staticmethod
    async def rollover(db: AsyncSession, data: LeaveBalanceRollover) -> int:
        """Open *to_year* balances from *from_year*.

        Each new row gets the type's ``days_allowed``, plus the unused
        remainder when the type carries forward.
        """
        previous = (await db.execute(
            select(LeaveBalance)
            .options(selectinload(LeaveBalance.leave_type))
            .where(LeaveBalance.year == data.from_year)
        )).scalars().all()
        result = await db.execute(
            select(LeaveBalance.employee_id, LeaveBalance.leave_type_id)
            .where(LeaveBalance.year == data.to_year)
        )
        existing = {(employee_id, type_id) for employee_id, type_id in result.all()}

        created = 0
        for prev in previous:
            if (prev.employee_id, prev.leave_type_id) in existing:
                continue
            carried = prev.remaining if prev.leave_type.carry_forward and prev.remaining > 0 else 0
            db.add(LeaveBalance(
                employee_id=prev.employee_id,
                leave_type_id=prev.leave_type_id,
                year=data.to_year,
                allocated=prev.leave_type.days_allowed + carried,
                used=0,
            ))
            created += 1
        await db.flush()
        logger.info("Rolled %d leave balances from %s to %s", created, data.from_year, data.to_year)
        return created

    @staticmethod
    async def consume(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        days: int,
    ) -> None:
        """Add *days* to ``used`` atomically; a missing balance row is left alone."""
        result = await db.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
            .values(used=LeaveBalance.used + days)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "No %s leave balance for employee %s (type %s); usage not recorded",
                year, employee_id, leave_type_id,
            )


# ═════════════════════════════════════════════════════════════════════
# LeaveApplicationService
# ═════════════════════════════════════════════════════════════════════


def _application_options():
    return (selectinload(LeaveApplication.employee), selectinload(LeaveApplication.leave_type))


class LeaveApplicationService:

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def list_applications(
        db: AsyncSession,
        pagination: PaginationParams,
        principal: Principal,
        scope: Scope,
        *,
        status: Optional[LeaveStatus] = None,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = (
            select(LeaveApplication)
            .join(LeaveApplication.employee)
            .options(*_application_options())
            .order_by(LeaveApplication.created_at.desc())
        )
        query = restrict_visible(query, LeaveApplication, scope, principal, "leaves.view")
        query = apply_filters(query, LeaveApplication, {
            "status": status,
            "employee_id": employee_id,
            "start_date__from": from_date,
            "end_date__to": to_date,
        })
        query = apply_filters(query, Employee, {"department_id": department_id})
        query = apply_search(query, Employee, search, _SEARCH_COLUMNS)
        return await paginate(db, query, pagination, model=LeaveApplication)

    @staticmethod
    async def get_application(
        db: AsyncSession,
        application_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> LeaveApplication:
        application = await get_or_404(
            db, LeaveApplication, application_id, *_application_options(), label=_LABEL,
        )
        if not can_manage(principal, scope, application.employee, "leaves.view"):
            raise ForbiddenException("You do not have permission to view this leave application.")
        return application

    # ── Apply ───────────────────────────────────────────────────────

    @staticmethod
    async def _applicant(
        db: AsyncSession,
        data: LeaveApply,
        principal: Principal,
        scope: Scope,
    ) -> Employee:
        on_behalf = (
            data.employee_id is not None
            and data.employee_id != principal.employee_id
        )
        if on_behalf:
            if not (principal.can("leaves.create") and principal.can("employees.view")):
                raise ForbiddenException("You cannot apply for leave on behalf of another employee.")
            employee = await db.get(Employee, data.employee_id)
            if employee is None:
                raise ValidationException({"employee_id": ["The selected employee is invalid."]})
            if not scope.covers((employee.current_branch_id,), (employee.department_id,)):
                raise ForbiddenException("This employee is outside your branch or department.")
            return employee

        if principal.employee_id is None:
            raise ValidationException({"employee_id": [
                "You must be associated with an employee record to apply for leave."
            ]})
        return await db.get(Employee, principal.employee_id)

    @staticmethod
    async def apply(
        db: AsyncSession,
        data: LeaveApply,
        principal: Principal,
        scope: Scope,
    ) -> LeaveApplication:
        employee = await LeaveApplicationService._applicant(db, data, principal, scope)
        await ensure_exists(db, LeaveType, data.leave_type_id, "leave_type_id")
        days = leave_days(data.start_date, data.end_date)

        # Holders of leaves.edit may book leave beyond the recorded balance.
        if not principal.can("leaves.edit"):
            balance = await LeaveBalanceService._find(
                db, employee.id, data.leave_type_id, data.start_date.year,
            )
            if balance is None:
                raise ValidationException({"leave_type_id": [
                    "You do not have a leave balance for this leave type."
                ]})
            if balance.remaining < days:
                raise ValidationException({"leave_type_id": [
                    f"Not enough leave balance. Available: {balance.remaining} days, "
                    f"Requested: {days} days."
                ]})

        auto_approve = (
            data.auto_approve
            and principal.can("leaves.approve")
            and employee.id != principal.employee_id
        )
        application = LeaveApplication(
            employee_id=employee.id,
            leave_type_id=data.leave_type_id,
            start_date=data.start_date,
            end_date=data.end_date,
            days=days,
            reason=data.reason,
            status=LeaveStatus.approved if auto_approve else LeaveStatus.pending,
            approved_by=principal.user_id if auto_approve else None,
            approved_at=_utcnow() if auto_approve else None,
        )
        db.add(application)
        await db.flush()
        if auto_approve:
            await LeaveBalanceService.consume(
                db, employee.id, data.leave_type_id, data.start_date.year, days,
            )
        logger.info(
            "Leave application %s for employee %s: %d day(s), %s",
            application.id, employee.id, days, application.status.value,
        )
        return await LeaveApplicationService.get_application(db, application.id, principal, scope)

    # ── Workflow ────────────────────────────────────────────────────

    @staticmethod
    async def _for_decision(
        db: AsyncSession,
        application_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
        action: str,
    ) -> LeaveApplication:
        application = await get_or_404(
            db, LeaveApplication, application_id, *_application_options(), label=_LABEL,
        )
        if application.status is not LeaveStatus.pending:
            raise InvalidTransitionError("leave application", LeaveStatus.pending.value, action)
        if principal.employee_id is not None and application.employee_id == principal.employee_id:
            raise ForbiddenException("You cannot decide on your own leave application.")
        employee = application.employee
        if not scope.covers((employee.current_branch_id,), (employee.department_id,)):
            raise ForbiddenException("This leave application is outside your branch or department.")
        return application

    @staticmethod
    async def approve(
        db: AsyncSession,
        application_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> LeaveApplication:
        application = await LeaveApplicationService._for_decision(
            db, application_id, principal, scope, "approved",
        )
        await transition(
            db, LeaveApplication, application_id,
            expected=LeaveStatus.pending,
            target=LeaveStatus.approved,
            action="approved",
            label=_LABEL,
            approved_by=principal.user_id,
            approved_at=_utcnow(),
        )
        await LeaveBalanceService.consume(
            db,
            application.employee_id,
            application.leave_type_id,
            application.start_date.year,
            application.days,
        )
        return await LeaveApplicationService.get_application(db, application_id, principal, scope)

    @staticmethod
    async def reject(
        db: AsyncSession,
        application_id: uuid.UUID,
        reason: str,
        principal: Principal,
        scope: Scope,
    ) -> LeaveApplication:
        await LeaveApplicationService._for_decision(db, application_id, principal, scope, "rejected")
        await transition(
            db, LeaveApplication, application_id,
            expected=LeaveStatus.pending,
            target=LeaveStatus.rejected,
            action="rejected",
            label=_LABEL,
            approved_by=principal.user_id,
            approved_at=_utcnow(),
            rejection_reason=reason,
        )
        return await LeaveApplicationService.get_application(db, application_id, principal, scope)

    @staticmethod
    async def cancel(
        db: AsyncSession,
        application_id: uuid.UUID,
        principal: Principal,
        scope: Scope,
    ) -> LeaveApplication:
        application = await get_or_404(
            db, LeaveApplication, application_id, *_application_options(), label=_LABEL,
        )
        employee = application.employee
        allowed = (
            principal.can("leaves.edit")
            or application.employee_id == principal.employee_id
            or (
                principal.can("leaves.approve")
                and not scope.is_unrestricted
                and scope.covers((employee.current_branch_id,), (employee.department_id,))
            )
        )
        if not allowed:
            raise ForbiddenException("You do not have permission to cancel this leave application.")
        await transition(
            db, LeaveApplication, application_id,
            expected=LeaveStatus.pending,
            target=LeaveStatus.cancelled,
            action="cancelled",
            label=_LABEL,
        )
        return await LeaveApplicationService.get_application(db, application_id, principal, scope)

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
        status: Optional[LeaveStatus] = None,
        department_id: Optional[uuid.UUID] = None,
        leave_type_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> tuple[PaginatedResponse, LeaveReportSummary]:
        """Applications starting inside the range (default: last 30 days) plus totals."""
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=30)
        if start_date > end_date:
            raise ValidationException(
                {"end_date": ["The end date must be a date after or equal to start date."]}
            )

        query = (
            select(LeaveApplication)
            .join(LeaveApplication.employee)
            .where(LeaveApplication.start_date.between(start_date, end_date))
        )
        query = restrict_visible(query, LeaveApplication, scope, principal, "leaves.view")
        query = apply_filters(query, LeaveApplication, {
            "status": status,
            "leave_type_id": leave_type_id,
            "employee_id": employee_id,
        })
        query = apply_filters(query, Employee, {"department_id": department_id})

        filtered = query.subquery()
        rows = await db.execute(
            select(filtered.c.status, func.count(), func.coalesce(func.sum(filtered.c.days), 0))
            .group_by(filtered.c.status)
        )
        summary = LeaveReportSummary()
        for st, n, days in rows.all():
            setattr(summary, LeaveStatus(st).value, n)
            summary.total += n
            summary.total_days += int(days)

        query = query.options(*_application_options()).order_by(LeaveApplication.start_date.desc())
        return await paginate(db, query, pagination, model=LeaveApplication), summary
