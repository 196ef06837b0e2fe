"""Permission catalog, role permission validation and scope resolution."""

from __future__ import annotations

import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from hrportal.admin.schemas import RoleCreate
from hrportal.admin.service import AdminService
from hrportal.auth.permissions import DEFAULT_CATALOG, PermissionCatalog
from hrportal.auth.scope import Scope, ScopeKind, resolve_scope
from hrportal.common.constants import BRANCH_MANAGER, DEPARTMENT_HEAD, RecordType
from hrportal.common.exceptions import ValidationException
from tests.conftest import login_as, make_principal


# ═════════════════════════════════════════════════════════════════════
# Catalog
# ═════════════════════════════════════════════════════════════════════


class TestCatalog:

    def test_groups_cover_every_module(self):
        groups = DEFAULT_CATALOG.list_permissions()
        for name in (
            "users", "roles", "employees", "branches", "departments", "designations",
            "attendance", "leaves", "transfers", "movements", "reports", "special",
        ):
            assert name in groups

    def test_crud_keys_present(self):
        for key in ("employees.view", "employees.create", "employees.edit", "employees.delete"):
            assert key in DEFAULT_CATALOG

    def test_approval_and_special_keys(self):
        assert "leaves.approve" in DEFAULT_CATALOG
        assert "transfers.approve" in DEFAULT_CATALOG
        assert "movements.approve" in DEFAULT_CATALOG
        assert "attendance.admin" in DEFAULT_CATALOG
        assert BRANCH_MANAGER in DEFAULT_CATALOG
        assert DEPARTMENT_HEAD in DEFAULT_CATALOG

    def test_keys_are_flat_union_of_groups(self):
        flat = {k for keys in DEFAULT_CATALOG.list_permissions().values() for k in keys}
        assert flat == set(DEFAULT_CATALOG.keys)

    def test_label_lookup(self):
        assert DEFAULT_CATALOG.label("leaves.approve") == "Approve Leaves"
        assert DEFAULT_CATALOG.label("nope.nothing") is None

    def test_unknown_preserves_order_and_dedupes(self):
        assert DEFAULT_CATALOG.unknown(["x.b", "leaves.view", "x.a", "x.b"]) == ["x.b", "x.a"]

    def test_groups_are_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_CATALOG.list_permissions()["extra"] = {}  # type: ignore[index]

    def test_custom_catalog_from_groups(self):
        catalog = PermissionCatalog.from_groups({"widgets": {"widgets.view": "View Widgets"}})
        assert catalog.keys == frozenset({"widgets.view"})
        assert "leaves.view" not in catalog


# ═════════════════════════════════════════════════════════════════════
# Role validation
# ═════════════════════════════════════════════════════════════════════


class TestRolePermissions:

    async def test_create_role_dedupes_keys(self, db):
        role = await AdminService.create_role(
            db,
            RoleCreate(name="Clerk", permissions=["leaves.view", "leaves.view", "employees.view"]),
            DEFAULT_CATALOG,
        )
        assert role.permissions == ["leaves.view", "employees.view"]

    async def test_unknown_key_rejected(self, db):
        with pytest.raises(ValidationException) as exc_info:
            await AdminService.create_role(
                db,
                RoleCreate(name="Bad", permissions=["leaves.view", "salary.view"]),
                DEFAULT_CATALOG,
            )
        assert exc_info.value.errors == {"permissions": ["Unknown permission 'salary.view'."]}

    async def test_role_validated_against_app_catalog(self, db, app_factory):
        """A key valid in the default catalog is refused by an app built with a trimmed one."""
        trimmed = PermissionCatalog.from_groups({"roles": {"roles.create": "Create Roles"}})
        application = app_factory(trimmed)
        _, headers = await login_as(db, ["roles.create"])

        async with AsyncClient(transport=ASGITransport(app=application), base_url="http://test") as ac:
            resp = await ac.post(
                "/api/v1/admin/roles",
                json={"name": "Viewer", "permissions": ["leaves.view"]},
                headers=headers,
            )
        assert resp.status_code == 422
        assert resp.json()["errors"]["permissions"] == ["Unknown permission 'leaves.view'."]

    async def test_permissions_endpoint_lists_catalog(self, client, db):
        _, headers = await login_as(db, ["roles.view"])
        resp = await client.get("/api/v1/admin/permissions", headers=headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["leaves"]["leaves.approve"] == "Approve Leaves"


# ═════════════════════════════════════════════════════════════════════
# Scope resolution
# ═════════════════════════════════════════════════════════════════════


class TestResolveScope:

    branch_id = uuid.uuid4()
    department_id = uuid.uuid4()

    def test_branch_manager_with_branch(self):
        principal = make_principal([BRANCH_MANAGER], branch_id=self.branch_id)
        assert resolve_scope(principal, RecordType.leave) == Scope.for_branch(self.branch_id)

    def test_branch_manager_wins_over_department_head(self):
        principal = make_principal(
            [BRANCH_MANAGER, DEPARTMENT_HEAD],
            branch_id=self.branch_id,
            department_id=self.department_id,
        )
        assert resolve_scope(principal, RecordType.attendance).kind is ScopeKind.branch

    def test_branch_manager_without_branch_falls_through_to_department(self):
        principal = make_principal(
            [BRANCH_MANAGER, DEPARTMENT_HEAD], department_id=self.department_id,
        )
        assert resolve_scope(principal, RecordType.movement) == Scope.for_department(self.department_id)

    def test_department_head_with_department(self):
        principal = make_principal([DEPARTMENT_HEAD], department_id=self.department_id)
        assert resolve_scope(principal, "transfer") == Scope.for_department(self.department_id)

    def test_department_head_without_department_is_unrestricted(self):
        principal = make_principal([DEPARTMENT_HEAD])
        assert resolve_scope(principal, RecordType.leave).is_unrestricted

    def test_branch_manager_without_branch_is_unrestricted(self):
        principal = make_principal([BRANCH_MANAGER])
        assert resolve_scope(principal, RecordType.employee).is_unrestricted

    def test_plain_principal_is_unrestricted(self):
        principal = make_principal(["leaves.view"], branch_id=self.branch_id)
        assert resolve_scope(principal, RecordType.leave).is_unrestricted

    def test_holidays_ignore_department_scope(self):
        principal = make_principal([DEPARTMENT_HEAD], department_id=self.department_id)
        assert resolve_scope(principal, RecordType.holiday).is_unrestricted

    def test_holidays_honour_branch_scope(self):
        principal = make_principal([BRANCH_MANAGER], branch_id=self.branch_id)
        assert resolve_scope(principal, RecordType.holiday) == Scope.for_branch(self.branch_id)

    def test_unknown_record_type_rejected(self):
        with pytest.raises(ValueError):
            resolve_scope(make_principal(), "payroll")

    def test_covers(self):
        scope = Scope.for_branch(self.branch_id)
        assert scope.covers((uuid.uuid4(), self.branch_id))
        assert not scope.covers((uuid.uuid4(),), (self.department_id,))
        assert Scope.unrestricted().covers()
