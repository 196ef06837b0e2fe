"""Holiday service — CRUD plus month calendar."""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.scope import UNRESTRICTED, Scope, ScopeKind
from hrportal.common.exceptions import ValidationException
from hrportal.common.filters import apply_search
from hrportal.common.lookups import get_or_404
from hrportal.common.pagination import PaginatedResponse, PaginationParams, paginate_list
from hrportal.core_hr.models import Branch
from hrportal.holidays.calendar import DayEntry, expand_calendar
from hrportal.holidays.models import Holiday
from hrportal.holidays.schemas import HolidayCreate, HolidayUpdate

logger = logging.getLogger(__name__)


def _visible(holidays: Sequence[Holiday], scope: Scope) -> list[Holiday]:
    if scope.kind is not ScopeKind.branch:
        return list(holidays)
    return [h for h in holidays if h.applies_to_branch(scope.branch_id)]


async def _branch_list(
    db: AsyncSession,
    branch_ids: Optional[list[uuid.UUID]],
) -> Optional[list[str]]:
    """Validate and serialise an applicable-branches list (empty → all branches)."""
    if not branch_ids:
        return None
    wanted = list(dict.fromkeys(branch_ids))
    found = set((await db.execute(select(Branch.id).where(Branch.id.in_(wanted)))).scalars())
    missing = [str(b) for b in wanted if b not in found]
    if missing:
        raise ValidationException(
            {"applicable_branches": [f"The selected branch {b} is invalid." for b in missing]}
        )
    return [str(b) for b in wanted]


class HolidayService:
    """Async holiday operations."""

    @staticmethod
    async def holidays_for_range(
        db: AsyncSession,
        start: date,
        end: date,
        *,
        scope: Scope = UNRESTRICTED,
        search: Optional[str] = None,
    ) -> list[Holiday]:
        """Holidays stored inside [start, end] plus every recurring holiday."""
        query = (
            select(Holiday)
            .where(
                or_(
                    Holiday.date.between(start, end),
                    Holiday.is_recurring.is_(True),
                )
            )
            .order_by(Holiday.date)
        )
        query = apply_search(query, Holiday, search, ["title", "description"])
        holidays = (await db.execute(query)).scalars().all()
        return _visible(holidays, scope)

    @staticmethod
    async def list_holidays(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        year: int,
        scope: Scope = UNRESTRICTED,
        search: Optional[str] = None,
    ) -> PaginatedResponse:
        holidays = await HolidayService.holidays_for_range(
            db, date(year, 1, 1), date(year, 12, 31), scope=scope, search=search,
        )
        # Recurring rows keep their original year, so order by month/day.
        holidays.sort(key=lambda h: (h.date.month, h.date.day))
        return paginate_list(holidays, pagination)

    @staticmethod
    async def get_holiday(db: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
        return await get_or_404(db, Holiday, holiday_id, label="Holiday")

    @staticmethod
    async def create_holiday(db: AsyncSession, data: HolidayCreate) -> Holiday:
        holiday = Holiday(
            title=data.title,
            date=data.date,
            description=data.description,
            is_recurring=data.is_recurring,
            applicable_branches=await _branch_list(db, data.applicable_branches),
        )
        db.add(holiday)
        await db.flush()
        logger.info("Holiday %r on %s created", holiday.title, holiday.date)
        return holiday

    @staticmethod
    async def update_holiday(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        data: HolidayUpdate,
    ) -> Holiday:
        holiday = await get_or_404(db, Holiday, holiday_id, label="Holiday")
        changes = data.model_dump(exclude_unset=True)
        for field in ("title", "date", "is_recurring"):
            if field in changes and changes[field] is None:
                raise ValidationException({field: [f"The {field.replace('_', ' ')} field is required."]})
        if "applicable_branches" in changes:
            changes["applicable_branches"] = await _branch_list(db, changes["applicable_branches"])
        for field, value in changes.items():
            setattr(holiday, field, value)
        await db.flush()
        return holiday

    @staticmethod
    async def delete_holiday(db: AsyncSession, holiday_id: uuid.UUID) -> None:
        holiday = await get_or_404(db, Holiday, holiday_id, label="Holiday")
        await db.delete(holiday)
        await db.flush()

    @staticmethod
    async def month_calendar(
        db: AsyncSession,
        year: int,
        month: int,
        *,
        scope: Scope = UNRESTRICTED,
    ) -> list[DayEntry]:
        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
        holidays = await HolidayService.holidays_for_range(db, start, end, scope=scope)
        return expand_calendar(year, month, holidays)
