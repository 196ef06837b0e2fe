"""Branches, departments, designations and employees — guards and scoping."""

from __future__ import annotations

import uuid
import warnings
from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SAWarning

from hrportal.auth.scope import Scope
from hrportal.common.constants import BRANCH_MANAGER, DEPARTMENT_HEAD, EmployeeStatus, GenderType
from hrportal.common.exceptions import (
    ConflictError,
    DependentRecordsError,
    ForbiddenException,
    ValidationException,
)
from hrportal.common.pagination import PaginationParams
from hrportal.core_hr.models import Branch, Department, Designation, Employee
from hrportal.core_hr.schemas import DepartmentUpdate, EmployeeCreate, EmployeeUpdate
from hrportal.core_hr.service import (
    BranchService,
    DepartmentService,
    DesignationService,
    EmployeeService,
)
from hrportal.database import Base
from tests.conftest import _make_department, login_as, seed_employee, seed_user


async def _child_department(db, parent: Department, name: str) -> Department:
    child = Department(
        **_make_department(branch_id=parent.branch_id, name=name),
        parent_department_id=parent.id,
    )
    db.add(child)
    await db.commit()
    return child


# ═════════════════════════════════════════════════════════════════════
# Delete guards
# ═════════════════════════════════════════════════════════════════════


class TestDeleteGuards:

    async def test_delete_empty_department(self, db, org):
        empty = Department(**_make_department(branch_id=org.branch.id, name="Archive"))
        db.add(empty)
        await db.commit()

        await DepartmentService.delete_department(db, empty.id)
        await db.commit()
        assert await db.get(Department, empty.id) is None

    async def test_department_with_employee_kept(self, db, org, employee):
        with pytest.raises(DependentRecordsError) as exc_info:
            await DepartmentService.delete_department(db, org.department.id)
        assert exc_info.value.detail == "Cannot delete department with existing employees."
        assert (await db.execute(select(Department).where(Department.id == org.department.id))).scalar_one()

    async def test_department_with_children_kept(self, db, org):
        parent = Department(**_make_department(branch_id=org.branch.id, name="Operations"))
        db.add(parent)
        await db.commit()
        await _child_department(db, parent, "Logistics")

        with pytest.raises(DependentRecordsError):
            await DepartmentService.delete_department(db, parent.id)

    async def test_designation_with_employee_kept(self, db, org, employee):
        with pytest.raises(DependentRecordsError):
            await DesignationService.delete_designation(db, org.designation.id)

    async def test_branch_with_employees_kept(self, db, org, employee):
        with pytest.raises(DependentRecordsError) as exc_info:
            await BranchService.delete_branch(db, org.branch.id)
        assert "employees" in exc_info.value.detail

    async def test_branch_with_departments_kept(self, db, org):
        with pytest.raises(DependentRecordsError) as exc_info:
            await BranchService.delete_branch(db, org.branch.id)
        assert "departments" in exc_info.value.detail

    async def test_empty_branch_deleted(self, db):
        branch = Branch(name="Pop-up", branch_code="BR-POP")
        db.add(branch)
        await db.commit()
        await BranchService.delete_branch(db, branch.id)
        await db.commit()
        assert await db.get(Branch, branch.id) is None

    async def test_employee_linked_to_user_kept(self, db, org, employee):
        await seed_user(db, employee=employee)
        with pytest.raises(DependentRecordsError):
            await EmployeeService.delete_employee(db, employee.id)

    async def test_delete_refusal_is_problem_document(self, client, db, org, employee):
        _, headers = await login_as(db, ["departments.delete"])
        resp = await client.delete(f"/api/v1/departments/{org.department.id}", headers=headers)
        assert resp.status_code == 409
        assert resp.headers["content-type"].startswith("application/problem+json")
        assert resp.json()["detail"] == "Cannot delete department with existing employees."


# ═════════════════════════════════════════════════════════════════════
# Cycle checks
# ═════════════════════════════════════════════════════════════════════


class TestCycleChecks:

    async def test_department_cannot_be_own_parent(self, db, org):
        with pytest.raises(ValidationException):
            await DepartmentService.update_department(
                db, org.department.id, DepartmentUpdate(parent_department_id=org.department.id),
            )

    async def test_department_multi_level_cycle_rejected(self, db, org):
        a = org.department
        b = await _child_department(db, a, "Platform")
        c = await _child_department(db, b, "Infrastructure")

        with pytest.raises(ValidationException) as exc_info:
            await DepartmentService.update_department(
                db, a.id, DepartmentUpdate(parent_department_id=c.id),
            )
        assert "parent_department_id" in exc_info.value.errors

    async def test_department_reparent_to_sibling_allowed(self, db, org):
        a = await _child_department(db, org.department, "Frontend")
        b = await _child_department(db, org.department, "Backend")
        updated = await DepartmentService.update_department(
            db, a.id, DepartmentUpdate(parent_department_id=b.id),
        )
        assert updated.parent_department_id == b.id

    async def test_employee_cannot_report_to_self(self, db, org, employee):
        with pytest.raises(ValidationException):
            await EmployeeService.update_employee(
                db, employee.id, EmployeeUpdate(reporting_to=employee.id),
            )

    async def test_employee_reporting_cycle_rejected(self, db, org):
        a = await seed_employee(db, org, first_name="A")
        b = await seed_employee(db, org, first_name="B", reporting_to=a.id)
        c = await seed_employee(db, org, first_name="C", reporting_to=b.id)

        with pytest.raises(ValidationException) as exc_info:
            await EmployeeService.update_employee(db, a.id, EmployeeUpdate(reporting_to=c.id))
        assert exc_info.value.errors["reporting_to"] == [
            "The selected manager already reports to this employee."
        ]

    async def test_org_chart_is_cycle_safe(self, db, org):
        a = await seed_employee(db, org, first_name="A")
        b = await seed_employee(db, org, first_name="B", reporting_to=a.id)
        # Corrupt data written around the service layer.
        a.reporting_to = b.id
        await db.commit()

        chart = await EmployeeService.build_org_chart(db, a.id)
        assert chart[0].id == a.id
        assert [n.id for n in chart[0].children] == [b.id]
        assert chart[0].children[0].children == []


# ═════════════════════════════════════════════════════════════════════
# Employees
# ═════════════════════════════════════════════════════════════════════


class TestEmployees:

    def _payload(self, org, **overrides) -> EmployeeCreate:
        data = dict(
            employee_code="EMP-100",
            first_name="Karim",
            last_name="Hasan",
            email="karim@example.com",
            joining_date="2024-05-01",
            department_id=org.department.id,
            designation_id=org.designation.id,
            current_branch_id=org.branch.id,
            nid="1990123456789",
        )
        data.update(overrides)
        return EmployeeCreate(**data)

    async def test_create_and_duplicate_email(self, db, org):
        await EmployeeService.create_employee(db, self._payload(org))
        await db.commit()
        with pytest.raises(ConflictError) as exc_info:
            await EmployeeService.create_employee(
                db, self._payload(org, employee_code="EMP-101", nid=None),
            )
        assert "email" in exc_info.value.errors

    async def test_duplicate_nid(self, db, org):
        await EmployeeService.create_employee(db, self._payload(org))
        await db.commit()
        with pytest.raises(ConflictError) as exc_info:
            await EmployeeService.create_employee(
                db, self._payload(org, employee_code="EMP-102", email="other@example.com"),
            )
        assert "nid" in exc_info.value.errors

    async def test_unknown_designation_is_validation_error(self, db, org):
        with pytest.raises(ValidationException) as exc_info:
            await EmployeeService.create_employee(
                db, self._payload(org, designation_id=uuid.uuid4()),
            )
        assert "designation_id" in exc_info.value.errors

    async def test_branch_scope_blocks_foreign_create(self, db, org):
        with pytest.raises(ForbiddenException):
            await EmployeeService.create_employee(
                db, self._payload(org), scope=Scope.for_branch(org.other_branch.id),
            )

    async def test_list_scoped_to_branch(self, db, org, employee):
        await seed_employee(db, org, other=True)
        result = await EmployeeService.list_employees(
            db, PaginationParams(page=1, page_size=10, sort=None),
            scope=Scope.for_branch(org.branch.id),
        )
        assert [e.id for e in result.data] == [employee.id]

    async def test_list_search(self, db, org, employee):
        await seed_employee(db, org, first_name="Nasrin")
        result = await EmployeeService.list_employees(
            db, PaginationParams(page=1, page_size=10, sort=None), search="nasr",
        )
        assert [e.first_name for e in result.data] == ["Nasrin"]

    async def test_department_head_cannot_view_other_department(self, client, db, org, employee):
        outsider = await seed_employee(db, org, other=True)
        _, headers = await login_as(db, ["employees.view", DEPARTMENT_HEAD], employee=employee)

        resp = await client.get(f"/api/v1/employees/{outsider.id}", headers=headers)
        assert resp.status_code == 403
        resp = await client.get(f"/api/v1/employees/{employee.id}", headers=headers)
        assert resp.status_code == 200

    async def test_branch_manager_list(self, client, db, org, employee):
        await seed_employee(db, org, other=True)
        _, headers = await login_as(db, ["employees.view", BRANCH_MANAGER], branch_id=org.other_branch.id)

        resp = await client.get("/api/v1/employees", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["meta"]["total"] == 1

    async def test_missing_permission(self, client, db):
        _, headers = await login_as(db, ["leaves.view"])
        resp = await client.get("/api/v1/employees", headers=headers)
        assert resp.status_code == 403


class TestDesignations:

    async def test_list_ordered_by_rank(self, db, org):
        db.add_all([
            Designation(name="Head of Engineering", department_id=org.department.id, rank=1),
            Designation(name="Intern", department_id=org.department.id, rank=9),
        ])
        await db.commit()
        result = await DesignationService.list_designations(
            db, PaginationParams(page=1, page_size=10, sort=None), department_id=org.department.id,
        )
        assert [d.rank for d in result.data] == [1, 3, 9]

    async def test_branch_code_unique(self, client, db, org):
        _, headers = await login_as(db, ["branches.create"])
        resp = await client.post(
            "/api/v1/branches",
            json={"name": "Duplicate", "branch_code": org.branch.branch_code},
            headers=headers,
        )
        assert resp.status_code == 409
        assert "branch_code" in resp.json()["errors"]


async def test_employee_count_on_department(db, org, employee):
    counts = await DepartmentService.employee_counts(db, [org.department.id, org.other_department.id])
    assert counts == {org.department.id: 1}
    assert (await db.execute(select(Employee))).scalars().all() == [employee]


# ═════════════════════════════════════════════════════════════════════
# Employee report
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeReport:

    PAGE = PaginationParams(page=1, page_size=20, sort=None)

    async def _staff(self, db, org):
        await seed_employee(db, org, first_name="Karim", gender=GenderType.male)
        await seed_employee(
            db, org, first_name="Salma", gender=GenderType.female,
            status=EmployeeStatus.on_leave, joining_date=date(2023, 6, 1),
        )
        await seed_employee(
            db, org, first_name="Jamal", gender=GenderType.male,
            status=EmployeeStatus.terminated, joining_date=date(2020, 2, 1),
        )
        await seed_employee(db, org, other=True, first_name="Rupa", gender=GenderType.female)

    async def test_summary_counts(self, db, org):
        await self._staff(db, org)
        result, summary = await EmployeeService.report(db, self.PAGE)
        assert result.meta.total == 4
        assert summary.model_dump() == {
            "total": 4,
            "active": 2,
            "inactive": 0,
            "on_leave": 1,
            "terminated": 1,
            "male": 2,
            "female": 2,
        }

    async def test_scope_and_filters_apply_to_summary(self, db, org):
        await self._staff(db, org)
        result, summary = await EmployeeService.report(
            db, self.PAGE,
            scope=Scope.for_branch(org.branch.id),
            gender=GenderType.male,
        )
        assert sorted(e.first_name for e in result.data) == ["Jamal", "Karim"]
        assert summary.total == 2
        assert summary.female == 0
        assert summary.terminated == 1

    async def test_joining_date_range(self, db, org):
        await self._staff(db, org)
        result, summary = await EmployeeService.report(
            db, self.PAGE, joined_from=date(2020, 1, 1), joined_to=date(2023, 12, 31),
        )
        assert sorted(e.first_name for e in result.data) == ["Jamal", "Salma"]
        assert summary.total == 2

    async def test_reversed_joining_range(self, db):
        with pytest.raises(ValidationException) as exc_info:
            await EmployeeService.report(
                db, self.PAGE, joined_from=date(2024, 1, 1), joined_to=date(2023, 1, 1),
            )
        assert "joined_to" in exc_info.value.errors

    async def test_report_endpoint_with_reports_permission(self, client, db, org):
        await self._staff(db, org)
        _, headers = await login_as(db, ["reports.view", BRANCH_MANAGER], branch_id=org.other_branch.id)
        resp = await client.get("/api/v1/employees/report", headers=headers)
        assert resp.status_code == 200
        body = resp.json()
        assert [e["first_name"] for e in body["data"]["employees"]] == ["Rupa"]
        assert body["data"]["summary"]["female"] == 1
        assert body["meta"]["total"] == 1

    async def test_report_endpoint_needs_permission(self, client, db):
        _, headers = await login_as(db, ["leaves.view"])
        resp = await client.get("/api/v1/employees/report", headers=headers)
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# Schema metadata
# ═════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    "table, constraint",
    [(Branch.__table__, "fk_branch_head"), (Department.__table__, "fk_dept_head")],
)
def test_head_foreign_keys_created_after_tables(table, constraint):
    fk = next(c for c in table.foreign_key_constraints if c.name == constraint)
    assert fk.use_alter is True


def test_table_order_resolves_without_cycle_warning():
    with warnings.catch_warnings():
        warnings.simplefilter("error", SAWarning)
        names = [t.name for t in Base.metadata.sorted_tables]
    assert names.index("employees") > names.index("branches")
    assert names.index("employees") > names.index("departments")
