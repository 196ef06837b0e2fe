"""Auth router — login, logout, current user profile, password change."""


from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import _extract_bearer, get_current_user
from hrportal.auth.schemas import (
    LoginRequest,
    MeResponse,
    PasswordChangeRequest,
    ScopeOut,
    TokenResponse,
    UserInfo,
)
from hrportal.auth.scope import Principal, resolve_scope
from hrportal.auth.service import (
    _hash_token,
    authenticate,
    build_principal,
    change_password,
    create_session,
    revoke_session,
)
from hrportal.common.constants import RecordType
from hrportal.common.rate_limit import limiter
from hrportal.config import settings
from hrportal.database import get_db

router = APIRouter(prefix="", tags=["auth"])


def _user_info(principal: Principal) -> UserInfo:
    return UserInfo(
        id=principal.user_id,
        name=principal.name,
        email=principal.email,
        role=principal.role_name,
        employee_id=principal.employee_id,
        branch_id=principal.branch_id,
        department_id=principal.department_id,
    )


# ── POST /login — Email + password ──────────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    user = await authenticate(db, body.email, body.password)
    access_token, expires_in = await create_session(
        db,
        user,
        request.client.host if request.client else None,
        request.headers.get("user-agent"),
    )
    return TokenResponse(
        access_token=access_token,
        expires_in=expires_in,
        user=_user_info(build_principal(user)),
    )


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await revoke_session(db, _hash_token(_extract_bearer(request)))
    return {"message": "Logged out successfully."}


# ── GET /me — Current user profile ─────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(principal: Principal = Depends(get_current_user)):
    info = _user_info(principal)
    return MeResponse(
        **info.model_dump(),
        permissions=sorted(principal.permissions),
        scopes={
            rt.value: ScopeOut(**resolve_scope(principal, rt).as_dict())
            for rt in RecordType
        },
    )


# ── PUT /password — Change own password ────────────────────────────

@router.put("/password")
async def update_password(
    body: PasswordChangeRequest,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await change_password(db, principal.user_id, body.current_password, body.password)
    return {"message": "Password updated successfully."}
