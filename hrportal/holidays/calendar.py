"""Month calendar expansion for the holiday view."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Protocol

_WEEKEND = {calendar.SATURDAY, calendar.SUNDAY}


class HolidayLike(Protocol):
    date: date
    is_recurring: bool


@dataclass(frozen=True)
class DayEntry:
    date: date
    is_weekend: bool
    holidays: tuple[Any, ...] = field(default=())

    @property
    def is_holiday(self) -> bool:
        return bool(self.holidays)


def holiday_matches(holiday: HolidayLike, day: date) -> bool:
    """One-off holidays match their exact date; recurring ones match month/day in any year."""
    if holiday.is_recurring:
        return (holiday.date.month, holiday.date.day) == (day.month, day.day)
    return holiday.date == day


def expand_calendar(
    year: int,
    month: int,
    holidays: Iterable[HolidayLike] = (),
) -> list[DayEntry]:
    """Return one :class:`DayEntry` per day of *month* in *year*."""
    holidays = list(holidays)
    first = date(year, month, 1)
    days_in_month = calendar.monthrange(year, month)[1]

    entries: list[DayEntry] = []
    for offset in range(days_in_month):
        day = first + timedelta(days=offset)
        entries.append(
            DayEntry(
                date=day,
                is_weekend=day.weekday() in _WEEKEND,
                holidays=tuple(h for h in holidays if holiday_matches(h, day)),
            )
        )
    return entries
