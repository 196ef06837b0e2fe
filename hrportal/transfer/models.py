"""Transfer ORM model: move of an employee between branches/departments."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.auth.models import User
from hrportal.common.constants import TransferStatus
from hrportal.core_hr.models import Branch, Department, Designation, Employee
from hrportal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Transfer(Base):
    __tablename__ = "transfers"
    __table_args__ = (
        sa.Index("ix_transfers_status", "status"),
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
    from_branch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("branches.id", ondelete="RESTRICT"),
        nullable=False,
    )
    to_branch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("branches.id", ondelete="RESTRICT"),
        nullable=False,
    )
    from_department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id", ondelete="SET NULL"),
    )
    to_department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id", ondelete="SET NULL"),
    )
    from_designation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("designations.id", ondelete="SET NULL"),
    )
    to_designation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("designations.id", ondelete="SET NULL"),
    )
    effective_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    transfer_order_no: Mapped[Optional[str]] = mapped_column(sa.String(50))
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[TransferStatus] = mapped_column(
        sa.Enum(TransferStatus, name="transfer_status"),
        nullable=False,
        default=TransferStatus.pending,
        server_default=TransferStatus.pending.value,
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    employee: Mapped[Employee] = relationship()
    from_branch: Mapped[Branch] = relationship(foreign_keys=[from_branch_id])
    to_branch: Mapped[Branch] = relationship(foreign_keys=[to_branch_id])
    from_department: Mapped[Optional[Department]] = relationship(
        foreign_keys=[from_department_id],
    )
    to_department: Mapped[Optional[Department]] = relationship(
        foreign_keys=[to_department_id],
    )
    from_designation: Mapped[Optional[Designation]] = relationship(
        foreign_keys=[from_designation_id],
    )
    to_designation: Mapped[Optional[Designation]] = relationship(
        foreign_keys=[to_designation_id],
    )
    approver: Mapped[Optional[User]] = relationship(foreign_keys=[approved_by])

    def __repr__(self) -> str:
        return f"<Transfer {self.employee_id} {self.from_branch_id}->{self.to_branch_id} {self.status}>"
