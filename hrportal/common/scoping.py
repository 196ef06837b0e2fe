"""SQL predicates that restrict a query to the rows a :class:`Scope` can see."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Select, false, or_, select

from hrportal.attendance.models import Attendance
from hrportal.auth.scope import Principal, Scope, ScopeKind
from hrportal.core_hr.models import Employee
from hrportal.leave.models import LeaveApplication
from hrportal.movement.models import Movement
from hrportal.transfer.models import Transfer

# Record families whose rows reach a branch/department through ``employee_id``.
_VIA_EMPLOYEE = (Attendance, LeaveApplication, Movement)


def _employees_in(scope: Scope) -> Select:
    if scope.kind is ScopeKind.branch:
        return select(Employee.id).where(Employee.current_branch_id == scope.branch_id)
    return select(Employee.id).where(Employee.department_id == scope.department_id)


def scope_clause(model: Any, scope: Scope):
    """Return a WHERE clause for *model* under *scope*, or ``None`` if unrestricted."""
    if scope.is_unrestricted:
        return None

    if model is Employee:
        if scope.kind is ScopeKind.branch:
            return Employee.current_branch_id == scope.branch_id
        return Employee.department_id == scope.department_id

    if model is Transfer:
        # A transfer is visible from either end of the move.
        if scope.kind is ScopeKind.branch:
            return or_(
                Transfer.from_branch_id == scope.branch_id,
                Transfer.to_branch_id == scope.branch_id,
            )
        return or_(
            Transfer.from_department_id == scope.department_id,
            Transfer.to_department_id == scope.department_id,
        )

    if model in _VIA_EMPLOYEE:
        return model.employee_id.in_(_employees_in(scope))

    raise TypeError(f"No scope predicate defined for {model.__name__}")


def apply_scope(query: Select, model: Any, scope: Scope) -> Select:
    clause = scope_clause(model, scope)
    if clause is None:
        return query
    return query.where(clause)


def restrict_visible(
    query: Select,
    model: Any,
    scope: Scope,
    principal: Principal,
    see_all: str,
) -> Select:
    """Narrow *query* to what *principal* may list.

    A restricted scope wins. Otherwise holders of *see_all* see every row,
    and anyone else only the rows for their own employee record.
    """
    if not scope.is_unrestricted:
        return apply_scope(query, model, scope)
    if principal.can(see_all):
        return query
    if principal.employee_id is None:
        return query.where(false())
    return query.where(model.employee_id == principal.employee_id)


def can_manage(
    principal: Principal,
    scope: Scope,
    employee: Employee,
    see_all: str,
) -> bool:
    """Whether *principal* may act on records belonging to *employee*."""
    if not scope.is_unrestricted:
        return scope.covers((employee.current_branch_id,), (employee.department_id,))
    if principal.can(see_all):
        return True
    return principal.employee_id is not None and principal.employee_id == employee.id
