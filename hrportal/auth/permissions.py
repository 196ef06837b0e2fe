"""Permission catalog — the fixed set of permission keys a role may hold.

The catalog is an immutable value: the application factory stores one on
``app.state`` and handlers receive it through :func:`get_catalog`. Tests (or
a deployment with a trimmed feature set) can build their own with
:meth:`PermissionCatalog.from_groups` and hand it to ``create_app``.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from fastapi import Request

from hrportal.common.constants import BRANCH_MANAGER, DEPARTMENT_HEAD


def _crud(noun: str, *extra: tuple[str, str]) -> dict[str, str]:
    group = noun.lower()
    labels = {
        f"{group}.view": f"View {noun}",
        f"{group}.create": f"Create {noun}",
        f"{group}.edit": f"Edit {noun}",
        f"{group}.delete": f"Delete {noun}",
    }
    labels.update(extra)
    return labels


DEFAULT_PERMISSION_GROUPS: dict[str, dict[str, str]] = {
    "users": _crud("Users"),
    "roles": _crud("Roles"),
    "employees": _crud("Employees"),
    "branches": _crud("Branches"),
    "departments": _crud("Departments"),
    "designations": _crud("Designations"),
    "attendance": _crud(
        "Attendance",
        ("attendance.sync", "Sync Attendance"),
        ("attendance.admin", "Attendance Administration"),
    ),
    "leaves": _crud("Leaves", ("leaves.approve", "Approve Leaves")),
    "transfers": _crud("Transfers", ("transfers.approve", "Approve Transfers")),
    "movements": _crud("Movements", ("movements.approve", "Approve Movements")),
    "reports": {
        "reports.view": "View Reports",
        "reports.export": "Export Reports",
    },
    "special": {
        BRANCH_MANAGER: "Branch Manager Privileges",
        DEPARTMENT_HEAD: "Department Head Privileges",
    },
}


class PermissionCatalog:
    """Read-only ``group → key → label`` mapping."""

    __slots__ = ("_groups", "_keys")

    def __init__(self, groups: Mapping[str, Mapping[str, str]]) -> None:
        self._groups = MappingProxyType(
            {name: MappingProxyType(dict(keys)) for name, keys in groups.items()}
        )
        self._keys = frozenset(
            key for keys in self._groups.values() for key in keys
        )

    @classmethod
    def from_groups(cls, groups: Mapping[str, Mapping[str, str]]) -> PermissionCatalog:
        return cls(groups)

    def list_permissions(self) -> Mapping[str, Mapping[str, str]]:
        return self._groups

    @property
    def keys(self) -> frozenset[str]:
        return self._keys

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def unknown(self, keys: Iterable[str]) -> list[str]:
        """Return the keys in *keys* that the catalog does not define, in input order."""
        seen: set[str] = set()
        missing: list[str] = []
        for key in keys:
            if key not in self._keys and key not in seen:
                missing.append(key)
                seen.add(key)
        return missing

    def label(self, key: str) -> str | None:
        for keys in self._groups.values():
            if key in keys:
                return keys[key]
        return None


DEFAULT_CATALOG = PermissionCatalog(DEFAULT_PERMISSION_GROUPS)


def get_catalog(request: Request) -> PermissionCatalog:
    """FastAPI dependency: the catalog the running app was built with."""
    return request.app.state.permission_catalog
