"""Dashboard Pydantic v2 schemas — count sets and widget payloads."""

from __future__ import annotations

import datetime as dt
from typing import Union

from pydantic import BaseModel, Field

from hrportal.leave.schemas import LeaveApplicationOut
from hrportal.movement.schemas import MovementOut
from hrportal.transfer.schemas import TransferOut


# ═════════════════════════════════════════════════════════════════════
# Count sets (one per record family)
# ═════════════════════════════════════════════════════════════════════


class AttendanceCounts(BaseModel):
    """Attendance rows recorded for the day, by status."""

    present: int = 0
    absent: int = 0
    late: int = 0


class LeaveCounts(BaseModel):
    pending: int = Field(0, description="Awaiting a decision, any date")
    approved: int = Field(0, description="Approved, starting in the current month")
    on_leave_today: int = Field(0, description="Approved and covering the day")


class MovementCounts(BaseModel):
    pending: int = 0
    ongoing: int = Field(0, description="Approved and spanning the day")


class TransferCounts(BaseModel):
    pending: int = 0
    approved: int = Field(0, description="Approved, effective in the current month")


CountSet = Union[AttendanceCounts, LeaveCounts, MovementCounts, TransferCounts]


# ═════════════════════════════════════════════════════════════════════
# GET /summary
# ═════════════════════════════════════════════════════════════════════


class DashboardTotals(BaseModel):
    employees: int = 0
    branches: int = 0
    departments: int = 0


class DashboardSummary(BaseModel):
    as_of: dt.date
    totals: DashboardTotals
    attendance: AttendanceCounts
    leave: LeaveCounts
    movement: MovementCounts
    transfer: TransferCounts


# ═════════════════════════════════════════════════════════════════════
# GET /recent-activity
# ═════════════════════════════════════════════════════════════════════


class RecentActivity(BaseModel):
    leaves: list[LeaveApplicationOut] = []
    movements: list[MovementOut] = []
    transfers: list[TransferOut] = []
