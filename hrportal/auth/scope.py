"""Principal and row-visibility scope resolution.

A :class:`Scope` is computed once per request and record family, then
passed to every query that lists or counts rows of that family.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Optional, Union

from hrportal.common.constants import BRANCH_MANAGER, DEPARTMENT_HEAD, RecordType


class ScopeKind(str, enum.Enum):
    unrestricted = "unrestricted"
    branch = "branch"
    department = "department"


@dataclass(frozen=True)
class Scope:
    kind: ScopeKind
    branch_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None

    @classmethod
    def unrestricted(cls) -> Scope:
        return cls(ScopeKind.unrestricted)

    @classmethod
    def for_branch(cls, branch_id: uuid.UUID) -> Scope:
        return cls(ScopeKind.branch, branch_id=branch_id)

    @classmethod
    def for_department(cls, department_id: uuid.UUID) -> Scope:
        return cls(ScopeKind.department, department_id=department_id)

    @property
    def is_unrestricted(self) -> bool:
        return self.kind is ScopeKind.unrestricted

    def covers(
        self,
        branch_ids: tuple[Optional[uuid.UUID], ...] = (),
        department_ids: tuple[Optional[uuid.UUID], ...] = (),
    ) -> bool:
        """True when a row linked to any of the given branches/departments is visible."""
        if self.kind is ScopeKind.branch:
            return self.branch_id in branch_ids
        if self.kind is ScopeKind.department:
            return self.department_id in department_ids
        return True

    def as_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "branch_id": str(self.branch_id) if self.branch_id else None,
            "department_id": str(self.department_id) if self.department_id else None,
        }


UNRESTRICTED = Scope.unrestricted()


@dataclass(frozen=True)
class Principal:
    """The authenticated user on whose behalf a request runs."""

    user_id: uuid.UUID
    name: str
    email: str
    role_name: str
    permissions: frozenset[str] = field(default_factory=frozenset)
    branch_id: Optional[uuid.UUID] = None
    employee_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None

    def can(self, permission: str) -> bool:
        return permission in self.permissions


# Scope kinds each record family can be restricted by. Holidays carry a
# branch list but no department linkage.
RECORD_SCOPING: dict[RecordType, frozenset[ScopeKind]] = {
    RecordType.attendance: frozenset({ScopeKind.branch, ScopeKind.department}),
    RecordType.leave: frozenset({ScopeKind.branch, ScopeKind.department}),
    RecordType.movement: frozenset({ScopeKind.branch, ScopeKind.department}),
    RecordType.transfer: frozenset({ScopeKind.branch, ScopeKind.department}),
    RecordType.employee: frozenset({ScopeKind.branch, ScopeKind.department}),
    RecordType.holiday: frozenset({ScopeKind.branch}),
}


def resolve_scope(principal: Principal, record_type: Union[RecordType, str]) -> Scope:
    """Pick the row filter for *principal* over *record_type*.

    Branch manager with a branch wins over department head with a
    department; anything else (including a branch manager with no branch)
    is unrestricted.
    """
    supported = RECORD_SCOPING[RecordType(record_type)]

    if (
        ScopeKind.branch in supported
        and principal.can(BRANCH_MANAGER)
        and principal.branch_id is not None
    ):
        return Scope.for_branch(principal.branch_id)

    if (
        ScopeKind.department in supported
        and principal.can(DEPARTMENT_HEAD)
        and principal.department_id is not None
    ):
        return Scope.for_department(principal.department_id)

    return UNRESTRICTED
