"""Dashboard router — read-only endpoints for the HR dashboard widgets.

Every signed-in user gets a dashboard; the counts are narrowed by the
scope each record family resolves to for that user.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import get_current_user
from hrportal.auth.scope import Principal
from hrportal.dashboard.service import DashboardService, _today
from hrportal.database import get_db

router = APIRouter()


# ── GET /summary ────────────────────────────────────────────────────

@router.get("/summary")
async def dashboard_summary(
    as_of: Optional[date] = Query(None, description="Reference day; defaults to today"),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Totals plus attendance, leave, movement and transfer counts."""
    summary = await DashboardService.get_summary(db, principal, as_of or _today())
    return {"data": summary.model_dump(mode="json"), "message": "Dashboard retrieved successfully."}


# ── GET /recent-activity ────────────────────────────────────────────

@router.get("/recent-activity")
async def recent_activity(
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Latest leave applications, movements and transfers within scope."""
    activity = await DashboardService.recent_activity(db, principal)
    return {"data": activity.model_dump(mode="json"), "message": "Recent activity retrieved successfully."}
