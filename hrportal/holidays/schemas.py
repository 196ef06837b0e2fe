"""Holiday Pydantic schemas."""

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HolidayCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=150)
    date: dt.date
    description: Optional[str] = None
    is_recurring: bool = False
    applicable_branches: Optional[list[uuid.UUID]] = Field(
        None, description="Branch ids; omit or null for all branches",
    )


class HolidayUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=150)
    date: Optional[dt.date] = None
    description: Optional[str] = None
    is_recurring: Optional[bool] = None
    applicable_branches: Optional[list[uuid.UUID]] = None


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    date: dt.date
    description: Optional[str] = None
    is_recurring: bool
    applicable_branches: Optional[list[uuid.UUID]] = None
    created_at: dt.datetime
    updated_at: dt.datetime


class HolidayBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    is_recurring: bool


class CalendarDay(BaseModel):
    date: dt.date
    day: int
    weekday: str
    is_weekend: bool
    is_holiday: bool
    holidays: list[HolidayBrief] = []


class CalendarMonth(BaseModel):
    year: int
    month: int
    days: list[CalendarDay]
