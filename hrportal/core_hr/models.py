"""Core HR ORM models: Branch, Department, Designation, Employee.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
Column names match the PostgreSQL schema defined in 001_initial_schema.
Python-side defaults mirror the server defaults so freshly flushed rows
never need a lazy refresh under the async session.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.common.constants import EmployeeStatus, GenderType
from hrportal.database import Base

if TYPE_CHECKING:
    from hrportal.auth.models import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# Branch
# ═════════════════════════════════════════════════════════════════════


class Branch(Base):
    """Office branch / work-site."""

    __tablename__ = "branches"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    branch_code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(sa.Text)
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    email: Mapped[Optional[str]] = mapped_column(sa.String(255))
    head_employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", name="fk_branch_head", ondelete="SET NULL", use_alter=True),
    )
    is_head_office: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.false(),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.true(),
    )
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
    head_employee: Mapped[Optional[Employee]] = relationship(
        foreign_keys=[head_employee_id],
    )
    departments: Mapped[list[Department]] = relationship(
        back_populates="branch", foreign_keys="Department.branch_id",
    )
    employees: Mapped[list[Employee]] = relationship(
        back_populates="branch", foreign_keys="Employee.current_branch_id",
    )

    def __repr__(self) -> str:
        return f"<Branch {self.name!r} ({self.branch_code})>"


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base):
    """Organisational department (supports hierarchy via parent_department_id)."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    branch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("branches.id", ondelete="RESTRICT"),
        nullable=False,
    )
    parent_department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="RESTRICT"),
    )
    head_employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", name="fk_dept_head", ondelete="SET NULL", use_alter=True),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.true(),
    )
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
    branch: Mapped[Branch] = relationship(
        back_populates="departments", foreign_keys=[branch_id],
    )
    parent_department: Mapped[Optional[Department]] = relationship(
        remote_side=[id], foreign_keys=[parent_department_id],
        back_populates="children",
    )
    children: Mapped[list[Department]] = relationship(
        back_populates="parent_department",
        foreign_keys=[parent_department_id],
    )
    head_employee: Mapped[Optional[Employee]] = relationship(
        foreign_keys=[head_employee_id],
    )
    employees: Mapped[list[Employee]] = relationship(
        back_populates="department", foreign_keys="Employee.department_id",
    )
    designations: Mapped[list[Designation]] = relationship(
        back_populates="department",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Department {self.name!r}>"


# ═════════════════════════════════════════════════════════════════════
# Designation
# ═════════════════════════════════════════════════════════════════════


class Designation(Base):
    """Job title within a department; ``rank`` orders designations (1 = most senior)."""

    __tablename__ = "designations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
    )
    rank: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=sa.func.now(),
    )

    department: Mapped[Department] = relationship(back_populates="designations")
    employees: Mapped[list[Employee]] = relationship(back_populates="designation")

    def __repr__(self) -> str:
        return f"<Designation {self.name!r} rank={self.rank}>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Employee master record."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_code: Mapped[str] = mapped_column(
        sa.String(20), unique=True, nullable=False,
    )
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    gender: Mapped[Optional[GenderType]] = mapped_column(
        sa.Enum(GenderType, name="gender_type"),
    )
    date_of_birth: Mapped[Optional[date]] = mapped_column(sa.Date)
    joining_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(sa.Text)
    nid: Mapped[Optional[str]] = mapped_column(sa.String(50), unique=True)
    emergency_contact: Mapped[Optional[str]] = mapped_column(sa.String(255))
    basic_salary: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(12, 2))
    bank_account_details: Mapped[Optional[dict]] = mapped_column(JSONB)

    # ── Placement ───────────────────────────────────────────────────
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="RESTRICT"),
        nullable=False,
    )
    designation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("designations.id", ondelete="RESTRICT"),
        nullable=False,
    )
    current_branch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("branches.id", ondelete="RESTRICT"),
        nullable=False,
    )
    reporting_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    status: Mapped[EmployeeStatus] = mapped_column(
        sa.Enum(EmployeeStatus, name="employee_status"),
        nullable=False,
        default=EmployeeStatus.active,
        server_default=EmployeeStatus.active.value,
    )

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
    department: Mapped[Department] = relationship(
        back_populates="employees", foreign_keys=[department_id],
    )
    designation: Mapped[Designation] = relationship(back_populates="employees")
    branch: Mapped[Branch] = relationship(
        back_populates="employees", foreign_keys=[current_branch_id],
    )
    supervisor: Mapped[Optional[Employee]] = relationship(
        remote_side=[id], foreign_keys=[reporting_to],
    )
    user: Mapped[Optional[User]] = relationship(
        back_populates="employee", foreign_keys="User.employee_id",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Employee {self.employee_code} {self.full_name!r}>"
