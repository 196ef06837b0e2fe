"""Dashboard service — read-only aggregation queries across HR modules.

Every count runs as its own ``SELECT COUNT(*)`` over the record family's
scoped base filter, so one principal's dashboard never mixes scopes.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.attendance.models import Attendance
from hrportal.auth.scope import Principal, Scope, resolve_scope
from hrportal.common.constants import (
    RECENT_ACTIVITY_LIMIT,
    AttendanceStatus,
    LeaveStatus,
    MovementStatus,
    RecordType,
    TransferStatus,
)
from hrportal.common.scoping import apply_scope
from hrportal.core_hr.models import Branch, Department, Employee
from hrportal.dashboard.schemas import (
    AttendanceCounts,
    CountSet,
    DashboardSummary,
    DashboardTotals,
    LeaveCounts,
    MovementCounts,
    RecentActivity,
    TransferCounts,
)
from hrportal.leave.models import LeaveApplication
from hrportal.leave.schemas import LeaveApplicationOut
from hrportal.movement.models import Movement
from hrportal.movement.schemas import MovementOut
from hrportal.transfer.models import Transfer
from hrportal.transfer.schemas import TransferOut
from hrportal.transfer.service import transfer_options


def _today() -> date:
    return date.today()


def _month_bounds(as_of: date) -> tuple[date, date]:
    """``[first day of as_of's month, first day of the next month)``."""
    start = as_of.replace(day=1)
    if start.month == 12:
        return start, start.replace(year=start.year + 1, month=1)
    return start, start.replace(month=start.month + 1)


async def _count(db: AsyncSession, model, scope: Scope, *conditions) -> int:
    stmt = apply_scope(select(func.count()).select_from(model).where(*conditions), model, scope)
    return (await db.execute(stmt)).scalar_one()


class DashboardService:
    """Async dashboard aggregation queries."""

    @staticmethod
    async def aggregate(
        db: AsyncSession,
        record_type: Union[RecordType, str],
        scope: Scope,
        as_of: date,
    ) -> CountSet:
        """Counts for one record family as seen through *scope* on *as_of*."""
        record_type = RecordType(record_type)

        if record_type is RecordType.attendance:
            day = Attendance.date == as_of
            return AttendanceCounts(
                present=await _count(db, Attendance, scope, day, Attendance.status == AttendanceStatus.present),
                absent=await _count(db, Attendance, scope, day, Attendance.status == AttendanceStatus.absent),
                late=await _count(db, Attendance, scope, day, Attendance.status == AttendanceStatus.late),
            )

        if record_type is RecordType.leave:
            month_start, next_month = _month_bounds(as_of)
            approved = LeaveApplication.status == LeaveStatus.approved
            return LeaveCounts(
                pending=await _count(
                    db, LeaveApplication, scope, LeaveApplication.status == LeaveStatus.pending,
                ),
                approved=await _count(
                    db, LeaveApplication, scope, approved,
                    LeaveApplication.start_date >= month_start,
                    LeaveApplication.start_date < next_month,
                ),
                on_leave_today=await _count(
                    db, LeaveApplication, scope, approved,
                    LeaveApplication.start_date <= as_of,
                    LeaveApplication.end_date >= as_of,
                ),
            )

        if record_type is RecordType.movement:
            day_start = datetime.combine(as_of, time.min)
            return MovementCounts(
                pending=await _count(db, Movement, scope, Movement.status == MovementStatus.pending),
                # Compared by calendar day: started on/before as_of, ends on/after it.
                ongoing=await _count(
                    db, Movement, scope,
                    Movement.status == MovementStatus.approved,
                    Movement.from_datetime < day_start + timedelta(days=1),
                    Movement.to_datetime >= day_start,
                ),
            )

        if record_type is RecordType.transfer:
            month_start, next_month = _month_bounds(as_of)
            return TransferCounts(
                pending=await _count(db, Transfer, scope, Transfer.status == TransferStatus.pending),
                approved=await _count(
                    db, Transfer, scope,
                    Transfer.status == TransferStatus.approved,
                    Transfer.effective_date >= month_start,
                    Transfer.effective_date < next_month,
                ),
            )

        raise ValueError(f"No dashboard counts for record type {record_type.value!r}")

    # ═════════════════════════════════════════════════════════════════
    # GET /summary
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_summary(
        db: AsyncSession,
        principal: Principal,
        as_of: date,
    ) -> DashboardSummary:
        employee_scope = resolve_scope(principal, RecordType.employee)
        totals = DashboardTotals(
            employees=await _count(db, Employee, employee_scope),
            branches=(await db.execute(select(func.count()).select_from(Branch))).scalar_one(),
            departments=(await db.execute(select(func.count()).select_from(Department))).scalar_one(),
        )

        async def _for(record_type: RecordType) -> CountSet:
            scope = resolve_scope(principal, record_type)
            return await DashboardService.aggregate(db, record_type, scope, as_of)

        return DashboardSummary(
            as_of=as_of,
            totals=totals,
            attendance=await _for(RecordType.attendance),
            leave=await _for(RecordType.leave),
            movement=await _for(RecordType.movement),
            transfer=await _for(RecordType.transfer),
        )

    # ═════════════════════════════════════════════════════════════════
    # GET /recent-activity
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def recent_activity(
        db: AsyncSession,
        principal: Principal,
        limit: int = RECENT_ACTIVITY_LIMIT,
    ) -> RecentActivity:
        async def _latest(model, record_type: RecordType, *options):
            stmt = (
                select(model)
                .options(*options)
                .order_by(model.created_at.desc())
                .limit(limit)
            )
            stmt = apply_scope(stmt, model, resolve_scope(principal, record_type))
            return (await db.execute(stmt)).scalars().all()

        leaves = await _latest(
            LeaveApplication, RecordType.leave,
            selectinload(LeaveApplication.employee),
            selectinload(LeaveApplication.leave_type),
        )
        movements = await _latest(
            Movement, RecordType.movement, selectinload(Movement.employee),
        )
        transfers = await _latest(Transfer, RecordType.transfer, *transfer_options())
        return RecentActivity(
            leaves=[LeaveApplicationOut.model_validate(a) for a in leaves],
            movements=[MovementOut.model_validate(m) for m in movements],
            transfers=[TransferOut.model_validate(t) for t in transfers],
        )
