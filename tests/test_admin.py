"""Admin module — role and user management."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from hrportal.admin.schemas import RoleUpdate
from hrportal.admin.service import AdminService
from hrportal.auth.models import Role, User
from hrportal.auth.permissions import DEFAULT_CATALOG
from hrportal.common.exceptions import DependentRecordsError, ValidationException
from tests.conftest import TEST_PASSWORD, login_as, seed_user


class TestRoles:

    async def test_role_in_use_not_deleted(self, db):
        user = await seed_user(db, ["leaves.view"])
        with pytest.raises(DependentRecordsError) as exc_info:
            await AdminService.delete_role(db, user.role_id)
        assert exc_info.value.detail == "Cannot delete role assigned to users."
        assert await db.scalar(select(Role.id).where(Role.id == user.role_id)) is not None

    async def test_unused_role_deleted(self, client, db):
        role = Role(name="Temporary", permissions=[])
        db.add(role)
        await db.commit()
        _, headers = await login_as(db, ["roles.delete"])

        resp = await client.delete(f"/api/v1/admin/roles/{role.id}", headers=headers)
        assert resp.status_code == 200
        assert await db.scalar(select(Role.id).where(Role.id == role.id)) is None

    async def test_update_validates_permissions(self, db):
        role = Role(name="Auditor", permissions=["reports.view"])
        db.add(role)
        await db.commit()
        with pytest.raises(ValidationException):
            await AdminService.update_role(
                db, role.id, RoleUpdate(permissions=["reports.view", "payroll.run"]), DEFAULT_CATALOG,
            )

    async def test_duplicate_name(self, client, db):
        _, headers = await login_as(db, ["roles.create"])
        body = {"name": "Supervisor", "permissions": ["leaves.view"]}
        assert (await client.post("/api/v1/admin/roles", json=body, headers=headers)).status_code == 201
        resp = await client.post("/api/v1/admin/roles", json=body, headers=headers)
        assert resp.status_code == 409
        assert "name" in resp.json()["errors"]


class TestUsers:

    def _body(self, role_id, **overrides) -> dict:
        body = {
            "name": "Nadia Islam",
            "email": "nadia@example.com",
            "password": "long-enough-pw",
            "password_confirmation": "long-enough-pw",
            "role_id": str(role_id),
        }
        body.update(overrides)
        return body

    async def test_create_user_and_login(self, client, db):
        admin, headers = await login_as(db, ["users.create"])
        resp = await client.post("/api/v1/admin/users", json=self._body(admin.role_id), headers=headers)
        assert resp.status_code == 201
        assert resp.json()["email"] == "nadia@example.com"

        resp = await client.post(
            "/api/v1/auth/login", json={"email": "nadia@example.com", "password": "long-enough-pw"},
        )
        assert resp.status_code == 200

    async def test_duplicate_email(self, client, db):
        admin, headers = await login_as(db, ["users.create"])
        resp = await client.post(
            "/api/v1/admin/users", json=self._body(admin.role_id, email=admin.email), headers=headers,
        )
        assert resp.status_code == 409

    async def test_short_password(self, client, db):
        admin, headers = await login_as(db, ["users.create"])
        resp = await client.post(
            "/api/v1/admin/users",
            json=self._body(admin.role_id, password="short", password_confirmation="short"),
            headers=headers,
        )
        assert resp.status_code == 422

    async def test_employee_linked_once(self, client, db, org, employee):
        admin, headers = await login_as(db, ["users.create"])
        await seed_user(db, employee=employee)
        resp = await client.post(
            "/api/v1/admin/users",
            json=self._body(admin.role_id, employee_id=str(employee.id)),
            headers=headers,
        )
        assert resp.status_code == 409
        assert "employee_id" in resp.json()["errors"]

    async def test_cannot_delete_self(self, client, db):
        admin, headers = await login_as(db, ["users.delete"])
        resp = await client.delete(f"/api/v1/admin/users/{admin.id}", headers=headers)
        assert resp.status_code == 422
        assert await db.scalar(select(User.id).where(User.id == admin.id)) is not None

    async def test_password_kept_when_not_supplied(self, client, db):
        admin, headers = await login_as(db, ["users.edit"])
        target = await seed_user(db, email="keep@example.com")
        resp = await client.put(
            f"/api/v1/admin/users/{target.id}", json={"name": "Renamed"}, headers=headers,
        )
        assert resp.status_code == 200
        resp = await client.post(
            "/api/v1/auth/login", json={"email": "keep@example.com", "password": TEST_PASSWORD},
        )
        assert resp.status_code == 200
