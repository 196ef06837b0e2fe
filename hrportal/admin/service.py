"""Admin service — role and user account management."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.admin.schemas import RoleCreate, RoleUpdate, UserCreate, UserUpdate
from hrportal.auth.models import Role, User
from hrportal.auth.permissions import PermissionCatalog
from hrportal.auth.service import hash_password
from hrportal.common.exceptions import (
    ConflictError,
    DependentRecordsError,
    ValidationException,
)
from hrportal.common.filters import apply_search
from hrportal.common.lookups import count_where, ensure_exists, get_or_404
from hrportal.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrportal.core_hr.models import Branch, Employee

logger = logging.getLogger(__name__)


def _validate_permissions(catalog: PermissionCatalog, keys: list[str]) -> list[str]:
    """Reject keys outside *catalog*; return the de-duplicated list in input order."""
    unknown = catalog.unknown(keys)
    if unknown:
        logger.warning("Rejected unknown permission keys: %s", ", ".join(unknown))
        raise ValidationException(
            {"permissions": [f"Unknown permission '{key}'." for key in unknown]}
        )
    return list(dict.fromkeys(keys))


class AdminService:
    """Static service class for admin operations."""

    # ═════════════════════════════════════════════════════════════════
    # ROLES
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def list_roles(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(Role).order_by(Role.name)
        query = apply_search(query, Role, search, ["name", "description"])
        return await paginate(db, query, pagination, model=Role)

    @staticmethod
    async def user_counts(db: AsyncSession, role_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        if not role_ids:
            return {}
        result = await db.execute(
            select(User.role_id, func.count(User.id))
            .where(User.role_id.in_(role_ids))
            .group_by(User.role_id)
        )
        return {row[0]: row[1] for row in result.all()}

    @staticmethod
    async def get_role(db: AsyncSession, role_id: uuid.UUID) -> Role:
        return await get_or_404(db, Role, role_id, label="Role")

    @staticmethod
    async def create_role(
        db: AsyncSession,
        data: RoleCreate,
        catalog: PermissionCatalog,
    ) -> Role:
        permissions = _validate_permissions(catalog, data.permissions)
        if await db.scalar(select(Role.id).where(Role.name == data.name)) is not None:
            raise ConflictError("name", data.name)
        role = Role(name=data.name, description=data.description, permissions=permissions)
        db.add(role)
        await db.flush()
        logger.info("Role %r created with %d permissions", role.name, len(permissions))
        return role

    @staticmethod
    async def update_role(
        db: AsyncSession,
        role_id: uuid.UUID,
        data: RoleUpdate,
        catalog: PermissionCatalog,
    ) -> Role:
        role = await get_or_404(db, Role, role_id, label="Role")
        changes = data.model_dump(exclude_unset=True)

        if "name" in changes:
            if changes["name"] is None:
                raise ValidationException({"name": ["The name field is required."]})
            clash = await db.scalar(
                select(Role.id).where(Role.name == changes["name"], Role.id != role_id)
            )
            if clash is not None:
                raise ConflictError("name", changes["name"])
            role.name = changes["name"]
        if "description" in changes:
            role.description = changes["description"]
        if "permissions" in changes:
            role.permissions = _validate_permissions(catalog, changes["permissions"] or [])

        await db.flush()
        return role

    @staticmethod
    async def delete_role(db: AsyncSession, role_id: uuid.UUID) -> None:
        role = await get_or_404(db, Role, role_id, label="Role")
        if await count_where(db, User, User.role_id == role_id):
            logger.warning("Refused to delete role %r: still assigned", role.name)
            raise DependentRecordsError("Cannot delete role assigned to users.")
        await db.delete(role)
        await db.flush()

    # ═════════════════════════════════════════════════════════════════
    # USERS
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def list_users(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        role_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = select(User).options(selectinload(User.role)).order_by(User.name)
        if role_id is not None:
            query = query.where(User.role_id == role_id)
        query = apply_search(query, User, search, ["name", "email"])
        return await paginate(db, query, pagination, model=User)

    @staticmethod
    async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
        return await get_or_404(db, User, user_id, selectinload(User.role), label="User")

    @staticmethod
    async def _validate_links(
        db: AsyncSession,
        *,
        role_id: Optional[uuid.UUID],
        employee_id: Optional[uuid.UUID],
        branch_id: Optional[uuid.UUID],
        user_id: Optional[uuid.UUID] = None,
    ) -> None:
        await ensure_exists(db, Role, role_id, "role_id")
        await ensure_exists(db, Employee, employee_id, "employee_id")
        await ensure_exists(db, Branch, branch_id, "branch_id")
        if employee_id is not None:
            query = select(User.id).where(User.employee_id == employee_id)
            if user_id is not None:
                query = query.where(User.id != user_id)
            if await db.scalar(query) is not None:
                raise ConflictError("employee_id", employee_id)

    @staticmethod
    async def create_user(db: AsyncSession, data: UserCreate) -> User:
        if await db.scalar(select(User.id).where(User.email == data.email)) is not None:
            raise ConflictError("email", data.email)
        await AdminService._validate_links(
            db, role_id=data.role_id, employee_id=data.employee_id, branch_id=data.branch_id,
        )
        user = User(
            name=data.name,
            email=data.email,
            password_hash=hash_password(data.password),
            role_id=data.role_id,
            employee_id=data.employee_id,
            branch_id=data.branch_id,
            is_active=data.is_active,
        )
        db.add(user)
        await db.flush()
        logger.info("User %s created", user.email)
        return await AdminService.get_user(db, user.id)

    @staticmethod
    async def update_user(db: AsyncSession, user_id: uuid.UUID, data: UserUpdate) -> User:
        user = await get_or_404(db, User, user_id, label="User")
        changes = data.model_dump(exclude_unset=True, exclude={"password_confirmation"})

        for field in ("name", "email", "role_id", "is_active"):
            if field in changes and changes[field] is None:
                raise ValidationException({field: [f"The {field.replace('_', ' ')} field is required."]})
        if "email" in changes:
            clash = await db.scalar(
                select(User.id).where(User.email == changes["email"], User.id != user_id)
            )
            if clash is not None:
                raise ConflictError("email", changes["email"])
        await AdminService._validate_links(
            db,
            role_id=changes.get("role_id"),
            employee_id=changes.get("employee_id"),
            branch_id=changes.get("branch_id"),
            user_id=user_id,
        )

        password = changes.pop("password", None)
        if password:
            user.password_hash = hash_password(password)
        for field, value in changes.items():
            setattr(user, field, value)
        await db.flush()
        return await AdminService.get_user(db, user_id)

    @staticmethod
    async def delete_user(db: AsyncSession, user_id: uuid.UUID, *, actor_id: uuid.UUID) -> None:
        user = await get_or_404(db, User, user_id, label="User")
        if user.id == actor_id:
            raise ValidationException({"user": ["You cannot delete your own account."]})
        await db.delete(user)
        await db.flush()
        logger.info("User %s deleted", user.email)
