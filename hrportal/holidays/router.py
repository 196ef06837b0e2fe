"""Holidays router — holiday CRUD and the month calendar.

Any signed-in user may read holidays; branch managers only see the ones
that apply to their branch. Writes require ``attendance.admin``.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import require_permission, scope_for
from hrportal.auth.scope import Principal, Scope
from hrportal.common.constants import RecordType
from hrportal.common.pagination import PaginationParams
from hrportal.database import get_db
from hrportal.holidays.schemas import (
    CalendarDay,
    CalendarMonth,
    HolidayBrief,
    HolidayCreate,
    HolidayOut,
    HolidayUpdate,
)
from hrportal.holidays.service import HolidayService

router = APIRouter(prefix="", tags=["holidays"])

_holiday_scope = scope_for(RecordType.holiday)


@router.get("")
async def list_holidays(
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(_holiday_scope),
    pagination: PaginationParams = Depends(),
    year: Optional[int] = Query(None, ge=1900, le=9999, description="Defaults to the current year"),
    search: Optional[str] = Query(None, description="Search by title or description"),
):
    year = year or date.today().year
    result = await HolidayService.list_holidays(
        db, pagination, year=year, scope=scope, search=search,
    )
    return {
        "data": [HolidayOut.model_validate(h).model_dump(mode="json") for h in result.data],
        "meta": result.meta.model_dump(),
        "message": f"Found {result.meta.total} holidays in {year}.",
    }


# ── GET /holidays/calendar — month grid ─────────────────────────────

@router.get("/calendar")
async def holiday_calendar(
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(_holiday_scope),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    today = date.today()
    year = year or today.year
    month = month or today.month
    days = await HolidayService.month_calendar(db, year, month, scope=scope)
    grid = CalendarMonth(
        year=year,
        month=month,
        days=[
            CalendarDay(
                date=d.date,
                day=d.date.day,
                weekday=d.date.strftime("%A"),
                is_weekend=d.is_weekend,
                is_holiday=d.is_holiday,
                holidays=[HolidayBrief.model_validate(h) for h in d.holidays],
            )
            for d in days
        ],
    )
    return {"data": grid.model_dump(mode="json"), "message": "Calendar retrieved successfully."}


@router.post("", status_code=201)
async def create_holiday(
    body: HolidayCreate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("attendance.admin")),
):
    holiday = await HolidayService.create_holiday(db, body)
    return {
        "data": HolidayOut.model_validate(holiday).model_dump(mode="json"),
        "message": "Holiday created successfully.",
    }


@router.get("/{holiday_id}")
async def get_holiday(
    holiday_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Scope = Depends(_holiday_scope),
):
    holiday = await HolidayService.get_holiday(db, holiday_id)
    return {
        "data": HolidayOut.model_validate(holiday).model_dump(mode="json"),
        "message": "Holiday retrieved successfully.",
    }


@router.put("/{holiday_id}")
async def update_holiday(
    holiday_id: uuid.UUID,
    body: HolidayUpdate,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("attendance.admin")),
):
    holiday = await HolidayService.update_holiday(db, holiday_id, body)
    return {
        "data": HolidayOut.model_validate(holiday).model_dump(mode="json"),
        "message": "Holiday updated successfully.",
    }


@router.delete("/{holiday_id}")
async def delete_holiday(
    holiday_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_permission("attendance.admin")),
):
    await HolidayService.delete_holiday(db, holiday_id)
    return {"data": None, "message": "Holiday deleted successfully."}
