"""Auth service — password verification, JWT management, session lifecycle."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from passlib.context import CryptContext
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.auth.models import User, UserSession
from hrportal.auth.scope import Principal
from hrportal.common.exceptions import AuthenticationError, ValidationException
from hrportal.config import settings
from hrportal.core_hr.models import Employee

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# ── JWT helpers ─────────────────────────────────────────────────────

def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _create_access_token(user_id: uuid.UUID) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(user_id),
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


# ── User lookup ─────────────────────────────────────────────────────

def _user_options():
    return (
        selectinload(User.role),
        selectinload(User.employee),
        selectinload(User.branch),
    )


async def load_user(db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    result = await db.execute(
        select(User).where(User.id == user_id).options(*_user_options()),
    )
    return result.scalars().first()


def build_principal(user: User) -> Principal:
    """Snapshot a loaded ``User`` (role + employee eager-loaded) into a Principal."""
    employee: Optional[Employee] = user.employee
    return Principal(
        user_id=user.id,
        name=user.name,
        email=user.email,
        role_name=user.role.name,
        permissions=frozenset(user.role.permissions or []),
        branch_id=user.branch_id,
        employee_id=user.employee_id,
        department_id=employee.department_id if employee else None,
    )


# ── Login / logout ──────────────────────────────────────────────────

async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    """Return the active user matching the credentials or raise 401."""
    result = await db.execute(
        select(User).where(User.email == email).options(*_user_options()),
    )
    user = result.scalars().first()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email)
        raise AuthenticationError("Invalid email or password.")
    if not user.is_active:
        logger.warning("Login refused for inactive user %s", email)
        raise AuthenticationError("This account has been deactivated.")
    return user


async def create_session(
    db: AsyncSession,
    user: User,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, int]:
    """Issue an access token and persist its session row."""
    access_token, expires_in = _create_access_token(user.id)
    db.add(
        UserSession(
            user_id=user.id,
            token_hash=_hash_token(access_token),
            ip_address=ip,
            user_agent=user_agent,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )
    )
    user.last_login_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("User %s logged in", user.email)
    return access_token, expires_in


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    await db.execute(
        update(UserSession)
        .where(UserSession.token_hash == token_hash)
        .values(is_revoked=True)
    )


async def change_password(
    db: AsyncSession,
    user_id: uuid.UUID,
    current_password: str,
    new_password: str,
) -> None:
    user = await load_user(db, user_id)
    if user is None:
        raise AuthenticationError()
    if not verify_password(current_password, user.password_hash):
        raise ValidationException(
            {"current_password": ["The current password is incorrect."]}
        )
    user.password_hash = hash_password(new_password)
    await db.flush()
    logger.info("User %s changed their password", user.email)
