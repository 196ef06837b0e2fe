"""Enums and constants for HR Portal — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Employee / Core HR ──────────────────────────────────────────────

class EmployeeStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    on_leave = "on_leave"
    terminated = "terminated"


class GenderType(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    late = "late"
    half_day = "half_day"
    leave = "leave"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


# ── Movement ────────────────────────────────────────────────────────

class MovementType(str, enum.Enum):
    official = "official"
    personal = "personal"


class MovementStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"
    cancelled = "cancelled"


# ── Transfer ────────────────────────────────────────────────────────

class TransferStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"
    cancelled = "cancelled"


# ── Scoping ─────────────────────────────────────────────────────────

class RecordType(str, enum.Enum):
    """Record families the dashboard and list endpoints scope over."""

    attendance = "attendance"
    leave = "leave"
    movement = "movement"
    transfer = "transfer"
    employee = "employee"
    holiday = "holiday"


# ── Special permission keys ─────────────────────────────────────────

BRANCH_MANAGER = "branch_manager"
DEPARTMENT_HEAD = "department_head"


# ── Misc ────────────────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
RECENT_ACTIVITY_LIMIT = 5
MIN_PASSWORD_LENGTH = 8
