"""Attendance ORM models: daily records and per-branch working-hour settings."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.common.constants import AttendanceStatus
from hrportal.core_hr.models import Branch, Employee
from hrportal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Attendance(Base):
    __tablename__ = "attendances"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
        sa.Index("ix_attendances_date", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    check_in: Mapped[Optional[time]] = mapped_column(sa.Time)
    check_out: Mapped[Optional[time]] = mapped_column(sa.Time)
    status: Mapped[AttendanceStatus] = mapped_column(
        sa.Enum(AttendanceStatus, name="attendance_status"), nullable=False,
    )
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    employee: Mapped[Employee] = relationship()

    def __repr__(self) -> str:
        return f"<Attendance {self.employee_id} {self.date} {self.status}>"


class AttendanceSetting(Base):
    """Working hours and weekend days for one branch."""

    __tablename__ = "attendance_settings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    branch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("branches.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    work_start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    work_end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    late_threshold_minutes: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=15)
    half_day_hours: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=4)
    # Weekday numbers, 0 = Sunday .. 6 = Saturday
    weekend_days: Mapped[list[int]] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    branch: Mapped[Branch] = relationship()

    def __repr__(self) -> str:
        return f"<AttendanceSetting branch={self.branch_id}>"
