"""Holiday calendar expansion and holiday endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import pytest

from hrportal.common.constants import BRANCH_MANAGER
from hrportal.holidays.calendar import expand_calendar, holiday_matches
from hrportal.holidays.models import Holiday
from tests.conftest import login_as


@dataclass
class _Day:
    date: date
    is_recurring: bool = False


# ═════════════════════════════════════════════════════════════════════
# expand_calendar — pure logic (no DB)
# ═════════════════════════════════════════════════════════════════════


class TestExpandCalendar:

    def test_february_2025_length(self):
        days = expand_calendar(2025, 2)
        assert len(days) == 28
        assert days[0].date == date(2025, 2, 1)
        assert days[-1].date == date(2025, 2, 28)

    def test_leap_february(self):
        assert len(expand_calendar(2024, 2)) == 29

    def test_weekend_flags(self):
        days = {d.date: d for d in expand_calendar(2025, 2)}
        assert days[date(2025, 2, 1)].is_weekend      # Saturday
        assert days[date(2025, 2, 2)].is_weekend      # Sunday
        assert not days[date(2025, 2, 3)].is_weekend  # Monday
        assert sum(d.is_weekend for d in days.values()) == 8

    def test_recurring_matches_any_year(self):
        recurring = _Day(date(2024, 3, 17), is_recurring=True)
        assert holiday_matches(recurring, date(2025, 3, 17))
        assert holiday_matches(recurring, date(2026, 3, 17))
        assert not holiday_matches(recurring, date(2025, 3, 18))

    def test_one_off_matches_only_its_date(self):
        one_off = _Day(date(2024, 3, 17))
        assert holiday_matches(one_off, date(2024, 3, 17))
        assert not holiday_matches(one_off, date(2025, 3, 17))

    def test_holidays_attached_to_matching_days(self):
        recurring = _Day(date(2020, 3, 26), is_recurring=True)
        one_off = _Day(date(2025, 3, 31))
        stale = _Day(date(2024, 3, 5))
        days = {d.date: d for d in expand_calendar(2025, 3, [recurring, one_off, stale])}

        assert days[date(2025, 3, 26)].holidays == (recurring,)
        assert days[date(2025, 3, 31)].holidays == (one_off,)
        assert not days[date(2025, 3, 5)].is_holiday
        assert sum(d.is_holiday for d in days.values()) == 2

    def test_recurring_leap_day_skipped_in_common_years(self):
        leap = _Day(date(2024, 2, 29), is_recurring=True)
        assert not any(d.is_holiday for d in expand_calendar(2025, 2, [leap]))
        assert expand_calendar(2028, 2, [leap])[-1].is_holiday

    def test_restartable(self):
        holidays = [_Day(date(2025, 1, 1))]
        assert expand_calendar(2025, 1, holidays) == expand_calendar(2025, 1, holidays)


# ═════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════


@pytest.fixture
async def holidays(db, org):
    rows = [
        Holiday(title="Independence Day", date=date(2020, 3, 26), is_recurring=True),
        Holiday(title="Branch Picnic", date=date(2025, 3, 6), applicable_branches=[str(org.branch.id)]),
        Holiday(title="Other Branch Day", date=date(2025, 3, 7), applicable_branches=[str(org.other_branch.id)]),
        Holiday(title="Old One-off", date=date(2024, 3, 10)),
    ]
    db.add_all(rows)
    await db.commit()
    return rows


class TestHolidayAPI:

    async def test_calendar_marks_holidays(self, client, db, holidays):
        _, headers = await login_as(db)
        resp = await client.get(
            "/api/v1/holidays/calendar", params={"year": 2025, "month": 3}, headers=headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert len(data["days"]) == 31
        by_day = {d["day"]: d for d in data["days"]}
        assert by_day[26]["is_holiday"]
        assert by_day[26]["holidays"][0]["title"] == "Independence Day"
        assert by_day[1]["weekday"] == "Saturday"
        assert not by_day[10]["is_holiday"]
        assert by_day[6]["is_holiday"] and by_day[7]["is_holiday"]

    async def test_branch_manager_sees_own_branch_holidays(self, client, db, org, holidays):
        _, headers = await login_as(db, [BRANCH_MANAGER], branch_id=org.branch.id)
        resp = await client.get("/api/v1/holidays", params={"year": 2025}, headers=headers)
        assert resp.status_code == 200
        titles = [h["title"] for h in resp.json()["data"]]
        assert titles == ["Branch Picnic", "Independence Day"]

    async def test_list_includes_recurring_from_other_years(self, client, db, holidays):
        _, headers = await login_as(db)
        resp = await client.get("/api/v1/holidays", params={"year": 2025}, headers=headers)
        titles = {h["title"] for h in resp.json()["data"]}
        assert titles == {"Independence Day", "Branch Picnic", "Other Branch Day"}

    async def test_create_requires_attendance_admin(self, client, db):
        _, headers = await login_as(db, ["attendance.view"])
        resp = await client.post(
            "/api/v1/holidays", json={"title": "New Year", "date": "2026-01-01"}, headers=headers,
        )
        assert resp.status_code == 403

    async def test_create_rejects_unknown_branch(self, client, db, org):
        _, headers = await login_as(db, ["attendance.admin"])
        resp = await client.post(
            "/api/v1/holidays",
            json={
                "title": "Regional Day",
                "date": "2026-02-21",
                "applicable_branches": [str(org.branch.id), "00000000-0000-0000-0000-000000000001"],
            },
            headers=headers,
        )
        assert resp.status_code == 422
        assert "applicable_branches" in resp.json()["errors"]

    async def test_create_update_delete(self, client, db, org):
        _, headers = await login_as(db, ["attendance.admin"])
        resp = await client.post(
            "/api/v1/holidays",
            json={"title": "New Year", "date": "2026-01-01", "is_recurring": True},
            headers=headers,
        )
        assert resp.status_code == 201
        holiday_id = resp.json()["data"]["id"]

        resp = await client.put(
            f"/api/v1/holidays/{holiday_id}",
            json={"applicable_branches": [str(org.branch.id)]},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["applicable_branches"] == [str(org.branch.id)]

        resp = await client.delete(f"/api/v1/holidays/{holiday_id}", headers=headers)
        assert resp.status_code == 200
        resp = await client.get(f"/api/v1/holidays/{holiday_id}", headers=headers)
        assert resp.status_code == 404
