"""Movement ORM model: an employee's time away from the desk (official or personal)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.auth.models import User
from hrportal.common.constants import MovementStatus, MovementType
from hrportal.core_hr.models import Employee
from hrportal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Movement(Base):
    __tablename__ = "movements"
    __table_args__ = (
        sa.Index("ix_movements_status", "status"),
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
    movement_type: Mapped[MovementType] = mapped_column(
        sa.Enum(MovementType, name="movement_type"), nullable=False,
    )
    # Wall-clock times in the office's local zone.
    from_datetime: Mapped[datetime] = mapped_column(sa.DateTime, nullable=False)
    to_datetime: Mapped[datetime] = mapped_column(sa.DateTime, nullable=False)
    purpose: Mapped[str] = mapped_column(sa.Text, nullable=False)
    destination: Mapped[Optional[str]] = mapped_column(sa.String(255))
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[MovementStatus] = mapped_column(
        sa.Enum(MovementStatus, name="movement_status"),
        nullable=False,
        default=MovementStatus.pending,
        server_default=MovementStatus.pending.value,
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
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
    approver: Mapped[Optional[User]] = relationship(foreign_keys=[approved_by])

    def __repr__(self) -> str:
        return f"<Movement {self.employee_id} {self.movement_type} {self.status}>"
