"""Admin router — roles, user accounts, permission catalog.

Each endpoint is gated by the matching ``roles.*`` / ``users.*`` permission.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.admin.schemas import (
    RoleCreate,
    RoleOut,
    RoleUpdate,
    UserCreate,
    UserOut,
    UserUpdate,
)
from hrportal.admin.service import AdminService
from hrportal.auth.dependencies import require_permission
from hrportal.auth.permissions import PermissionCatalog, get_catalog
from hrportal.auth.scope import Principal
from hrportal.common.pagination import PaginationParams
from hrportal.database import get_db

router = APIRouter(prefix="", tags=["admin"])


# ═══════════════════════════════════════════════════════════════════
# PERMISSION CATALOG
# ═══════════════════════════════════════════════════════════════════


@router.get("/permissions")
async def list_permissions(
    _user: Principal = Depends(require_permission("roles.view", "roles.create", "roles.edit")),
    catalog: PermissionCatalog = Depends(get_catalog),
):
    """Grouped permission keys with their labels."""
    return {
        "data": {group: dict(keys) for group, keys in catalog.list_permissions().items()},
        "message": "Permissions retrieved successfully.",
    }


# ═══════════════════════════════════════════════════════════════════
# ROLES
# ═══════════════════════════════════════════════════════════════════


async def _role_out(db: AsyncSession, roles) -> list[dict]:
    counts = await AdminService.user_counts(db, [r.id for r in roles])
    out = []
    for role in roles:
        item = RoleOut.model_validate(role)
        item.users_count = counts.get(role.id, 0)
        out.append(item.model_dump(mode="json"))
    return out


@router.get("/roles")
async def list_roles(
    _user: Principal = Depends(require_permission("roles.view")),
    db: AsyncSession = Depends(get_db),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name or description"),
):
    result = await AdminService.list_roles(db, pagination, search=search)
    return {
        "data": await _role_out(db, result.data),
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} roles.",
    }


@router.post("/roles", status_code=201)
async def create_role(
    body: RoleCreate,
    _user: Principal = Depends(require_permission("roles.create")),
    db: AsyncSession = Depends(get_db),
    catalog: PermissionCatalog = Depends(get_catalog),
):
    role = await AdminService.create_role(db, body, catalog)
    return {"data": (await _role_out(db, [role]))[0], "message": "Role created successfully."}


@router.get("/roles/{role_id}")
async def get_role(
    role_id: uuid.UUID,
    _user: Principal = Depends(require_permission("roles.view")),
    db: AsyncSession = Depends(get_db),
):
    role = await AdminService.get_role(db, role_id)
    return {"data": (await _role_out(db, [role]))[0], "message": "Role retrieved successfully."}


@router.put("/roles/{role_id}")
async def update_role(
    role_id: uuid.UUID,
    body: RoleUpdate,
    _user: Principal = Depends(require_permission("roles.edit")),
    db: AsyncSession = Depends(get_db),
    catalog: PermissionCatalog = Depends(get_catalog),
):
    role = await AdminService.update_role(db, role_id, body, catalog)
    return {"data": (await _role_out(db, [role]))[0], "message": "Role updated successfully."}


@router.delete("/roles/{role_id}")
async def delete_role(
    role_id: uuid.UUID,
    _user: Principal = Depends(require_permission("roles.delete")),
    db: AsyncSession = Depends(get_db),
):
    await AdminService.delete_role(db, role_id)
    return {"data": None, "message": "Role deleted successfully."}


# ═══════════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════════


@router.get("/users")
async def list_users(
    _user: Principal = Depends(require_permission("users.view")),
    db: AsyncSession = Depends(get_db),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name or email"),
    role_id: Optional[uuid.UUID] = Query(None, description="Filter by role"),
):
    result = await AdminService.list_users(db, pagination, search=search, role_id=role_id)
    return {
        "data": [UserOut.model_validate(u).model_dump(mode="json") for u in result.data],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} users.",
    }


@router.post("/users", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    _user: Principal = Depends(require_permission("users.create")),
    db: AsyncSession = Depends(get_db),
):
    """Create a login account."""
    return await AdminService.create_user(db, body)


@router.get("/users/{user_id}", response_model=UserOut)
async def get_user(
    user_id: uuid.UUID,
    _user: Principal = Depends(require_permission("users.view")),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.get_user(db, user_id)


@router.put("/users/{user_id}", response_model=UserOut)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    _user: Principal = Depends(require_permission("users.edit")),
    db: AsyncSession = Depends(get_db),
):
    """Update a login account; the password changes only when supplied."""
    return await AdminService.update_user(db, user_id, body)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    principal: Principal = Depends(require_permission("users.delete")),
    db: AsyncSession = Depends(get_db),
):
    await AdminService.delete_user(db, user_id, actor_id=principal.user_id)
    return {"data": None, "message": "User deleted successfully."}
