"""Core HR service layer — async CRUD + business logic.

Uses:
  - ``paginate()`` from hrportal.common.pagination
  - ``apply_filters / apply_search`` from hrportal.common.filters
  - ``apply_scope`` from hrportal.common.scoping
  - ``NotFoundException / ConflictError / DependentRecordsError`` from hrportal.common.exceptions
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute, selectinload

from hrportal.auth.models import User
from hrportal.auth.scope import UNRESTRICTED, Scope
from hrportal.common.constants import EmployeeStatus, GenderType
from hrportal.common.exceptions import (
    ConflictError,
    DependentRecordsError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hrportal.common.filters import apply_filters, apply_search
from hrportal.common.lookups import count_where, ensure_exists, get_or_404
from hrportal.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrportal.common.scoping import apply_scope
from hrportal.core_hr.models import Branch, Department, Designation, Employee
from hrportal.core_hr.schemas import (
    BranchCreate,
    BranchUpdate,
    DepartmentCreate,
    DepartmentUpdate,
    DesignationCreate,
    DesignationUpdate,
    EmployeeCreate,
    EmployeeReportSummary,
    EmployeeUpdate,
    OrgChartNode,
)

logger = logging.getLogger(__name__)


# ── Shared helpers ──────────────────────────────────────────────────

async def _flush_unique(db: AsyncSession, values: dict[str, Any], fields: tuple[str, ...]) -> None:
    """Flush, translating a unique-constraint violation into ``ConflictError``."""
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        err = str(exc.orig)
        for field in fields:
            if field in err:
                raise ConflictError(field, values.get(field, ""))
        raise


async def _check_unique(
    db: AsyncSession,
    model: Any,
    field: str,
    value: Any,
    *,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    if value is None:
        return
    query = select(model.id).where(getattr(model, field) == value)
    if exclude_id is not None:
        query = query.where(model.id != exclude_id)
    if await db.scalar(query) is not None:
        raise ConflictError(field, value)


async def _walks_back_to(
    db: AsyncSession,
    id_col: InstrumentedAttribute,
    parent_col: InstrumentedAttribute,
    node_id: uuid.UUID,
    start_id: Optional[uuid.UUID],
) -> bool:
    """True if following *parent_col* upward from *start_id* reaches *node_id*."""
    seen: set[uuid.UUID] = set()
    current = start_id
    while current is not None:
        if current == node_id:
            return True
        if current in seen:
            # Pre-existing loop that does not pass through node_id.
            return False
        seen.add(current)
        current = await db.scalar(select(parent_col).where(id_col == current))
    return False


def _apply_changes(row: Any, changes: dict[str, Any]) -> None:
    for field, value in changes.items():
        setattr(row, field, value)


# ═════════════════════════════════════════════════════════════════════
# BranchService
# ═════════════════════════════════════════════════════════════════════


class BranchService:
    """Async CRUD operations for branches."""

    @staticmethod
    async def list_branches(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> PaginatedResponse:
        query = select(Branch).order_by(Branch.name)
        query = apply_filters(query, Branch, {"is_active": is_active})
        query = apply_search(query, Branch, search, ["name", "branch_code"])
        return await paginate(db, query, pagination, model=Branch)

    @staticmethod
    async def get_branch(db: AsyncSession, branch_id: uuid.UUID) -> Branch:
        return await get_or_404(db, Branch, branch_id, label="Branch")

    @staticmethod
    async def employee_count(db: AsyncSession, branch_id: uuid.UUID) -> int:
        return await count_where(db, Employee, Employee.current_branch_id == branch_id)

    @staticmethod
    async def create_branch(db: AsyncSession, data: BranchCreate) -> Branch:
        await _check_unique(db, Branch, "branch_code", data.branch_code)
        await ensure_exists(db, Employee, data.head_employee_id, "head_employee_id")
        branch = Branch(**data.model_dump())
        db.add(branch)
        await _flush_unique(db, data.model_dump(), ("branch_code",))
        logger.info("Branch %s created", branch.branch_code)
        return branch

    @staticmethod
    async def update_branch(
        db: AsyncSession,
        branch_id: uuid.UUID,
        data: BranchUpdate,
    ) -> Branch:
        branch = await get_or_404(db, Branch, branch_id, label="Branch")
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return branch
        if "branch_code" in changes:
            await _check_unique(
                db, Branch, "branch_code", changes["branch_code"], exclude_id=branch_id,
            )
        await ensure_exists(db, Employee, changes.get("head_employee_id"), "head_employee_id")
        _apply_changes(branch, changes)
        await _flush_unique(db, changes, ("branch_code",))
        return branch

    @staticmethod
    async def delete_branch(db: AsyncSession, branch_id: uuid.UUID) -> None:
        branch = await get_or_404(db, Branch, branch_id, label="Branch")
        if await BranchService.employee_count(db, branch_id):
            logger.warning("Refused to delete branch %s: employees attached", branch_id)
            raise DependentRecordsError("Cannot delete branch with existing employees.")
        if await count_where(db, Department, Department.branch_id == branch_id):
            logger.warning("Refused to delete branch %s: departments attached", branch_id)
            raise DependentRecordsError("Cannot delete branch with existing departments.")
        await db.delete(branch)
        await db.flush()


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


def _department_options():
    return (
        selectinload(Department.branch),
        selectinload(Department.parent_department),
    )


class DepartmentService:
    """Async CRUD operations for departments (with parent-cycle protection)."""

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        branch_id: Optional[uuid.UUID] = None,
        is_active: Optional[bool] = None,
    ) -> PaginatedResponse:
        query = (
            select(Department)
            .options(*_department_options())
            .order_by(Department.name)
        )
        query = apply_filters(
            query, Department, {"branch_id": branch_id, "is_active": is_active},
        )
        query = apply_search(query, Department, search, ["name", "description"])
        return await paginate(db, query, pagination, model=Department)

    @staticmethod
    async def employee_counts(
        db: AsyncSession,
        department_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, int]:
        if not department_ids:
            return {}
        result = await db.execute(
            select(Employee.department_id, func.count(Employee.id))
            .where(Employee.department_id.in_(department_ids))
            .group_by(Employee.department_id)
        )
        return {row[0]: row[1] for row in result.all()}

    @staticmethod
    async def get_department(db: AsyncSession, department_id: uuid.UUID) -> Department:
        return await get_or_404(
            db, Department, department_id, *_department_options(), label="Department",
        )

    @staticmethod
    async def create_department(db: AsyncSession, data: DepartmentCreate) -> Department:
        await ensure_exists(db, Branch, data.branch_id, "branch_id")
        await ensure_exists(db, Department, data.parent_department_id, "parent_department_id")
        await ensure_exists(db, Employee, data.head_employee_id, "head_employee_id")

        department = Department(**data.model_dump())
        db.add(department)
        await db.flush()
        logger.info("Department %r created", department.name)
        return await DepartmentService.get_department(db, department.id)

    @staticmethod
    async def update_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
    ) -> Department:
        department = await get_or_404(db, Department, department_id, label="Department")
        changes = data.model_dump(exclude_unset=True)

        if "branch_id" in changes:
            if changes["branch_id"] is None:
                raise ValidationException({"branch_id": ["The branch id field is required."]})
            await ensure_exists(db, Branch, changes["branch_id"], "branch_id")
        await ensure_exists(db, Employee, changes.get("head_employee_id"), "head_employee_id")

        parent_id = changes.get("parent_department_id")
        if parent_id is not None:
            if parent_id == department_id:
                raise ValidationException(
                    {"parent_department_id": ["Department cannot be its own parent."]}
                )
            await ensure_exists(db, Department, parent_id, "parent_department_id")
            if await _walks_back_to(
                db, Department.id, Department.parent_department_id, department_id, parent_id,
            ):
                logger.warning(
                    "Rejected parent %s for department %s: would form a cycle",
                    parent_id, department_id,
                )
                raise ValidationException(
                    {"parent_department_id": [
                        "The selected parent department is a descendant of this department."
                    ]}
                )

        _apply_changes(department, changes)
        await db.flush()
        return await DepartmentService.get_department(db, department_id)

    @staticmethod
    async def delete_department(db: AsyncSession, department_id: uuid.UUID) -> None:
        department = await get_or_404(db, Department, department_id, label="Department")
        if await count_where(db, Employee, Employee.department_id == department_id):
            logger.warning("Refused to delete department %s: employees attached", department_id)
            raise DependentRecordsError("Cannot delete department with existing employees.")
        if await count_where(db, Department, Department.parent_department_id == department_id):
            logger.warning("Refused to delete department %s: child departments", department_id)
            raise DependentRecordsError("Cannot delete department with child departments.")
        await db.delete(department)
        await db.flush()


# ═════════════════════════════════════════════════════════════════════
# DesignationService
# ═════════════════════════════════════════════════════════════════════


class DesignationService:
    """Async CRUD operations for designations."""

    @staticmethod
    async def list_designations(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = (
            select(Designation)
            .options(selectinload(Designation.department))
            .order_by(Designation.rank, Designation.name)
        )
        query = apply_filters(query, Designation, {"department_id": department_id})
        query = apply_search(query, Designation, search, ["name", "description"])
        return await paginate(db, query, pagination, model=Designation)

    @staticmethod
    async def get_designation(db: AsyncSession, designation_id: uuid.UUID) -> Designation:
        return await get_or_404(
            db, Designation, designation_id,
            selectinload(Designation.department),
            label="Designation",
        )

    @staticmethod
    async def create_designation(db: AsyncSession, data: DesignationCreate) -> Designation:
        await ensure_exists(db, Department, data.department_id, "department_id")
        designation = Designation(**data.model_dump())
        db.add(designation)
        await db.flush()
        return await DesignationService.get_designation(db, designation.id)

    @staticmethod
    async def update_designation(
        db: AsyncSession,
        designation_id: uuid.UUID,
        data: DesignationUpdate,
    ) -> Designation:
        designation = await get_or_404(db, Designation, designation_id, label="Designation")
        changes = data.model_dump(exclude_unset=True)
        if "department_id" in changes:
            if changes["department_id"] is None:
                raise ValidationException(
                    {"department_id": ["The department id field is required."]}
                )
            await ensure_exists(db, Department, changes["department_id"], "department_id")
        if "rank" in changes and changes["rank"] is None:
            raise ValidationException({"rank": ["The rank field is required."]})
        _apply_changes(designation, changes)
        await db.flush()
        return await DesignationService.get_designation(db, designation_id)

    @staticmethod
    async def delete_designation(db: AsyncSession, designation_id: uuid.UUID) -> None:
        designation = await get_or_404(db, Designation, designation_id, label="Designation")
        if await count_where(db, Employee, Employee.designation_id == designation_id):
            logger.warning("Refused to delete designation %s: employees attached", designation_id)
            raise DependentRecordsError("Cannot delete designation with existing employees.")
        await db.delete(designation)
        await db.flush()


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


def _employee_options():
    return (
        selectinload(Employee.department),
        selectinload(Employee.designation),
        selectinload(Employee.branch),
        selectinload(Employee.supervisor),
    )


_EMPLOYEE_UNIQUE = ("employee_code", "email", "nid")


class EmployeeService:
    """Async CRUD operations for employees."""

    # ── List (paginated, searchable, filterable, scoped) ────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        scope: Scope = UNRESTRICTED,
        search: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        branch_id: Optional[uuid.UUID] = None,
        designation_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
    ) -> PaginatedResponse:
        """Return a paginated, filtered, searchable employee list."""
        query = (
            select(Employee)
            .options(*_employee_options())
            .order_by(Employee.first_name, Employee.last_name)
        )
        query = apply_scope(query, Employee, scope)
        query = apply_filters(
            query,
            Employee,
            {
                "department_id": department_id,
                "current_branch_id": branch_id,
                "designation_id": designation_id,
                "status": status,
            },
        )
        query = apply_search(
            query, Employee, search,
            ["first_name", "last_name", "email", "employee_code"],
        )
        return await paginate(db, query, pagination, model=Employee)

    # ── Report (filtered list + status/gender summary) ──────────────

    @staticmethod
    async def report(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        scope: Scope = UNRESTRICTED,
        search: Optional[str] = None,
        branch_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        designation_id: Optional[uuid.UUID] = None,
        status: Optional[EmployeeStatus] = None,
        gender: Optional[GenderType] = None,
        joined_from: Optional[date] = None,
        joined_to: Optional[date] = None,
    ) -> tuple[PaginatedResponse, EmployeeReportSummary]:
        """Employees matching the filters, plus counts over the whole match set."""
        if joined_from and joined_to and joined_from > joined_to:
            raise ValidationException(
                {"joined_to": ["The joined to date must be a date after or equal to joined from."]}
            )

        query = apply_scope(select(Employee), Employee, scope)
        query = apply_filters(
            query,
            Employee,
            {
                "current_branch_id": branch_id,
                "department_id": department_id,
                "designation_id": designation_id,
                "status": status,
                "gender": gender,
                "joining_date__from": joined_from,
                "joining_date__to": joined_to,
            },
        )
        query = apply_search(
            query, Employee, search,
            ["first_name", "last_name", "email", "employee_code"],
        )

        filtered = query.subquery()
        summary = EmployeeReportSummary()
        by_status = await db.execute(
            select(filtered.c.status, func.count()).group_by(filtered.c.status)
        )
        for st, n in by_status.all():
            setattr(summary, EmployeeStatus(st).value, n)
            summary.total += n
        by_gender = await db.execute(
            select(filtered.c.gender, func.count())
            .where(filtered.c.gender.in_([GenderType.male, GenderType.female]))
            .group_by(filtered.c.gender)
        )
        for g, n in by_gender.all():
            setattr(summary, GenderType(g).value, n)

        query = query.options(*_employee_options()).order_by(
            Employee.first_name, Employee.last_name,
        )
        return await paginate(db, query, pagination, model=Employee), summary

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        scope: Scope = UNRESTRICTED,
    ) -> Employee:
        employee = await get_or_404(
            db, Employee, employee_id, *_employee_options(), label="Employee",
        )
        if not scope.covers((employee.current_branch_id,), (employee.department_id,)):
            raise ForbiddenException("This employee is outside your branch or department.")
        return employee

    @staticmethod
    async def direct_reports_count(db: AsyncSession, employee_id: uuid.UUID) -> int:
        return await count_where(db, Employee, Employee.reporting_to == employee_id)

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def _validate_placement(db: AsyncSession, values: dict[str, Any]) -> None:
        await ensure_exists(db, Department, values.get("department_id"), "department_id")
        await ensure_exists(db, Designation, values.get("designation_id"), "designation_id")
        await ensure_exists(db, Branch, values.get("current_branch_id"), "current_branch_id")
        await ensure_exists(db, Employee, values.get("reporting_to"), "reporting_to")

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        scope: Scope = UNRESTRICTED,
    ) -> Employee:
        """Create a new employee record."""
        values = data.model_dump()
        if not scope.covers((data.current_branch_id,), (data.department_id,)):
            raise ForbiddenException("You can only add employees to your own branch or department.")
        for field in _EMPLOYEE_UNIQUE:
            await _check_unique(db, Employee, field, values.get(field))
        await EmployeeService._validate_placement(db, values)

        employee = Employee(**values)
        db.add(employee)
        await _flush_unique(db, values, _EMPLOYEE_UNIQUE)
        logger.info("Employee %s created", employee.employee_code)
        return await EmployeeService.get_employee(db, employee.id)

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        *,
        scope: Scope = UNRESTRICTED,
    ) -> Employee:
        """Partial-update an existing employee."""
        employee = await EmployeeService.get_employee(db, employee_id, scope=scope)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return employee

        for field in ("employee_code", "email", "first_name", "last_name",
                      "joining_date", "department_id", "designation_id",
                      "current_branch_id", "status"):
            if field in changes and changes[field] is None:
                label = field.replace("_", " ")
                raise ValidationException({field: [f"The {label} field is required."]})

        for field in _EMPLOYEE_UNIQUE:
            if field in changes:
                await _check_unique(db, Employee, field, changes[field], exclude_id=employee_id)
        await EmployeeService._validate_placement(db, changes)

        manager_id = changes.get("reporting_to")
        if manager_id is not None:
            if manager_id == employee_id:
                raise ValidationException(
                    {"reporting_to": ["An employee cannot report to themselves."]}
                )
            if await _walks_back_to(
                db, Employee.id, Employee.reporting_to, employee_id, manager_id,
            ):
                logger.warning(
                    "Rejected manager %s for employee %s: would form a cycle",
                    manager_id, employee_id,
                )
                raise ValidationException(
                    {"reporting_to": [
                        "The selected manager already reports to this employee."
                    ]}
                )

        _apply_changes(employee, changes)
        await _flush_unique(db, changes, _EMPLOYEE_UNIQUE)
        return await EmployeeService.get_employee(db, employee_id)

    # ── Delete ──────────────────────────────────────────────────────

    @staticmethod
    async def delete_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        scope: Scope = UNRESTRICTED,
    ) -> None:
        employee = await EmployeeService.get_employee(db, employee_id, scope=scope)
        if await count_where(db, User, User.employee_id == employee_id):
            logger.warning("Refused to delete employee %s: linked user account", employee_id)
            raise DependentRecordsError("Cannot delete employee linked to a user account.")
        await db.delete(employee)
        await db.flush()

    # ── Org chart ───────────────────────────────────────────────────

    @staticmethod
    async def build_org_chart(
        db: AsyncSession,
        root_id: Optional[uuid.UUID] = None,
        *,
        max_depth: int = 5,
    ) -> list[OrgChartNode]:
        """Build the reporting-line tree.

        If *root_id* is provided the tree starts from that employee;
        otherwise every employee without a manager is a root. Each
        employee appears at most once even if stored data contains a loop.
        """
        result = await db.execute(
            select(Employee)
            .options(
                selectinload(Employee.department),
                selectinload(Employee.designation),
            )
            .order_by(Employee.first_name, Employee.last_name)
        )
        all_employees = result.scalars().all()
        emp_map: dict[uuid.UUID, Employee] = {e.id: e for e in all_employees}

        children_map: dict[Optional[uuid.UUID], list[Employee]] = {}
        for emp in all_employees:
            children_map.setdefault(emp.reporting_to, []).append(emp)

        visited: set[uuid.UUID] = set()

        def _build_node(emp: Employee, depth: int) -> OrgChartNode:
            visited.add(emp.id)
            node = OrgChartNode(
                id=emp.id,
                employee_code=emp.employee_code,
                name=emp.full_name,
                designation=emp.designation.name if emp.designation else None,
                department=emp.department.name if emp.department else None,
            )
            if depth < max_depth:
                for child in children_map.get(emp.id, []):
                    if child.id not in visited:
                        node.children.append(_build_node(child, depth + 1))
            return node

        if root_id:
            root_emp = emp_map.get(root_id)
            if root_emp is None:
                raise NotFoundException("Employee", str(root_id))
            return [_build_node(root_emp, 0)]

        return [_build_node(r, 0) for r in children_map.get(None, [])]
