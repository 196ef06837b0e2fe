"""Auth dependencies — JWT validation, permission enforcement, scope resolution."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.models import UserSession
from hrportal.auth.scope import Principal, Scope, resolve_scope
from hrportal.auth.service import _hash_token, build_principal, load_user
from hrportal.common.constants import RecordType
from hrportal.common.exceptions import AuthenticationError, ForbiddenException
from hrportal.config import settings
from hrportal.database import get_db


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Validate JWT, verify session, return the authenticated Principal."""
    token = _extract_bearer(request)

    # Decode JWT
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired.")
    except JWTError:
        raise AuthenticationError("Invalid token.")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type.")

    # Verify session exists, not revoked, not expired
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == _hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise AuthenticationError("Session invalid or expired.")

    user = await load_user(db, uuid.UUID(payload["sub"]))
    if user is None or not user.is_active:
        raise AuthenticationError("User account is inactive or not found.")

    principal = build_principal(user)
    request.state.principal = principal
    return principal


# ── Permission-based dependency ─────────────────────────────────────

def require_permission(*permissions: str) -> Callable:
    """Return a dependency that passes when the principal holds any of *permissions*."""

    async def _check(
        principal: Principal = Depends(get_current_user),
    ) -> Principal:
        if not any(principal.can(p) for p in permissions):
            raise ForbiddenException(
                detail=f"Permission '{' or '.join(permissions)}' is required.",
            )
        return principal

    return _check


# ── Scope dependency ────────────────────────────────────────────────

def scope_for(record_type: RecordType) -> Callable:
    """Return a dependency resolving the principal's scope over *record_type*."""

    async def _resolve(
        principal: Principal = Depends(get_current_user),
    ) -> Scope:
        return resolve_scope(principal, record_type)

    return _resolve
