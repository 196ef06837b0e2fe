"""Attendance module — recording, visibility, monthly grid and report."""

from __future__ import annotations

import uuid
from datetime import date, time

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select

from hrportal.attendance.models import Attendance, AttendanceSetting
from hrportal.attendance.schemas import (
    AttendanceCreate,
    AttendanceSettingCreate,
    AttendanceSettingUpdate,
    AttendanceUpdate,
)
from hrportal.attendance.service import AttendanceService, AttendanceSettingService
from hrportal.auth.scope import UNRESTRICTED, Scope
from hrportal.common.constants import BRANCH_MANAGER, AttendanceStatus
from hrportal.common.exceptions import ConflictError, ForbiddenException, ValidationException
from hrportal.common.pagination import PaginationParams
from tests.conftest import login_as, make_principal, seed_employee

DAY = date(2025, 3, 12)
PAGE = PaginationParams(page=1, page_size=20, sort=None)


async def _record(db, employee, status=AttendanceStatus.present, day=DAY, **extra) -> Attendance:
    record = Attendance(employee_id=employee.id, date=day, status=status, **extra)
    db.add(record)
    await db.commit()
    return record


@pytest.fixture
def admin():
    return make_principal(["attendance.admin", "attendance.view", "attendance.create"])


# ═════════════════════════════════════════════════════════════════════
# Recording
# ═════════════════════════════════════════════════════════════════════


class TestCreateAttendance:

    async def test_admin_records_for_anyone(self, db, org, employee, admin):
        record = await AttendanceService.create_attendance(
            db,
            AttendanceCreate(
                employee_id=employee.id, date=DAY, status=AttendanceStatus.late,
                check_in=time(9, 40), check_out=time(18, 0),
            ),
            admin, UNRESTRICTED,
        )
        assert record.status is AttendanceStatus.late
        assert record.employee.id == employee.id

    async def test_one_record_per_employee_per_day(self, db, org, employee, admin):
        await _record(db, employee)
        with pytest.raises(ConflictError) as exc_info:
            await AttendanceService.create_attendance(
                db,
                AttendanceCreate(employee_id=employee.id, date=DAY, status=AttendanceStatus.absent),
                admin, UNRESTRICTED,
            )
        assert "date" in exc_info.value.errors

    async def test_unknown_employee(self, db, admin):
        with pytest.raises(ValidationException):
            await AttendanceService.create_attendance(
                db,
                AttendanceCreate(
                    employee_id="00000000-0000-0000-0000-000000000001",
                    date=DAY, status=AttendanceStatus.present,
                ),
                admin, UNRESTRICTED,
            )

    async def test_branch_manager_limited_to_branch(self, db, org, employee):
        outsider = await seed_employee(db, org, other=True)
        manager = make_principal(["attendance.create", BRANCH_MANAGER], branch_id=org.branch.id)
        scope = Scope.for_branch(org.branch.id)

        await AttendanceService.create_attendance(
            db,
            AttendanceCreate(employee_id=employee.id, date=DAY, status=AttendanceStatus.present),
            manager, scope,
        )
        with pytest.raises(ForbiddenException):
            await AttendanceService.create_attendance(
                db,
                AttendanceCreate(employee_id=outsider.id, date=DAY, status=AttendanceStatus.present),
                manager, scope,
            )

    async def test_plain_user_only_for_self(self, db, org, employee):
        colleague = await seed_employee(db, org)
        me = make_principal(["attendance.create"], employee_id=employee.id)
        with pytest.raises(ForbiddenException):
            await AttendanceService.create_attendance(
                db,
                AttendanceCreate(employee_id=colleague.id, date=DAY, status=AttendanceStatus.present),
                me, UNRESTRICTED,
            )

    def test_check_out_before_check_in_rejected(self):
        with pytest.raises(ValueError):
            AttendanceCreate(
                employee_id="00000000-0000-0000-0000-000000000001",
                date=DAY, status=AttendanceStatus.present,
                check_in=time(10, 0), check_out=time(9, 0),
            )

    async def test_update_keeps_times_ordered(self, db, org, employee, admin):
        record = await _record(db, employee, check_in=time(9, 0))
        with pytest.raises(ValidationException):
            await AttendanceService.update_attendance(
                db, record.id, AttendanceUpdate(check_out=time(8, 30)), admin, UNRESTRICTED,
            )

    async def test_update_status(self, db, org, employee, admin):
        record = await _record(db, employee)
        updated = await AttendanceService.update_attendance(
            db, record.id, AttendanceUpdate(status=AttendanceStatus.half_day), admin, UNRESTRICTED,
        )
        assert updated.status is AttendanceStatus.half_day


# ═════════════════════════════════════════════════════════════════════
# Listing, monthly grid, report
# ═════════════════════════════════════════════════════════════════════


class TestAttendanceQueries:

    async def test_daily_list_own_records_only(self, db, org, employee):
        colleague = await seed_employee(db, org)
        await _record(db, employee)
        await _record(db, colleague)
        me = make_principal(["attendance.view"], employee_id=employee.id)

        result = await AttendanceService.list_daily(db, PAGE, me, UNRESTRICTED, day=DAY)
        assert [r.employee_id for r in result.data] == [employee.id]

    async def test_daily_list_department_scope(self, db, org, employee):
        outsider = await seed_employee(db, org, other=True)
        await _record(db, employee)
        await _record(db, outsider)

        result = await AttendanceService.list_daily(
            db, PAGE, make_principal(["attendance.view"]),
            Scope.for_department(org.other_department.id), day=DAY,
        )
        assert [r.employee_id for r in result.data] == [outsider.id]

    async def test_monthly_grid(self, db, org, employee, admin):
        await _record(db, employee, day=date(2025, 3, 3))
        await _record(db, employee, AttendanceStatus.absent, day=date(2025, 3, 4))
        await _record(db, employee, day=date(2025, 4, 1))

        rows, page = await AttendanceService.monthly(
            db, PAGE, admin, UNRESTRICTED, year=2025, month=3,
        )
        assert page.meta.total == 1
        assert rows[0].employee.id == employee.id
        assert rows[0].days == {3: AttendanceStatus.present, 4: AttendanceStatus.absent}

    async def test_report_summary(self, db, org, employee, admin):
        await _record(db, employee, day=date(2025, 3, 3))
        await _record(db, employee, AttendanceStatus.late, day=date(2025, 3, 4))
        await _record(db, employee, AttendanceStatus.late, day=date(2025, 3, 5))

        result, summary = await AttendanceService.report(
            db, PAGE, admin, UNRESTRICTED,
            start_date=date(2025, 3, 1), end_date=date(2025, 3, 31),
        )
        assert result.meta.total == 3
        assert (summary.total, summary.present, summary.late) == (3, 1, 2)

    async def test_report_rejects_reversed_range(self, db, admin):
        with pytest.raises(ValidationException):
            await AttendanceService.report(
                db, PAGE, admin, UNRESTRICTED,
                start_date=date(2025, 3, 31), end_date=date(2025, 3, 1),
            )


# ═════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════


class TestAttendanceAPI:

    async def test_create_and_list(self, client, db, org, employee):
        _, headers = await login_as(db, ["attendance.admin", "attendance.view", "attendance.create"])
        resp = await client.post(
            "/api/v1/attendance",
            json={"employee_id": str(employee.id), "date": DAY.isoformat(), "status": "present"},
            headers=headers,
        )
        assert resp.status_code == 201

        resp = await client.get(
            "/api/v1/attendance", params={"date": DAY.isoformat()}, headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["meta"]["total"] == 1

        resp = await client.post(
            "/api/v1/attendance",
            json={"employee_id": str(employee.id), "date": DAY.isoformat(), "status": "absent"},
            headers=headers,
        )
        assert resp.status_code == 409

    async def test_monthly_endpoint(self, client, db, org, employee):
        await _record(db, employee, day=date(2025, 3, 3))
        _, headers = await login_as(db, ["attendance.view"], employee=employee)
        resp = await client.get(
            "/api/v1/attendance/monthly", params={"year": 2025, "month": 3}, headers=headers,
        )
        assert resp.status_code == 200
        rows = resp.json()["data"]["rows"]
        assert len(rows) == 1
        assert rows[0]["days"] == {"3": "present"}

    async def test_delete_needs_permission(self, client, db, org, employee):
        record = await _record(db, employee)
        _, headers = await login_as(db, ["attendance.view", "attendance.admin"])
        resp = await client.delete(f"/api/v1/attendance/{record.id}", headers=headers)
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# Branch settings
# ═════════════════════════════════════════════════════════════════════


def _setting(branch_id, **overrides) -> AttendanceSettingCreate:
    data = dict(
        branch_id=branch_id,
        work_start_time=time(9, 0),
        work_end_time=time(17, 0),
        weekend_days=[6, 5],
    )
    data.update(overrides)
    return AttendanceSettingCreate(**data)


class TestAttendanceSettings:

    async def test_create_defaults_and_sorted_weekend(self, db, org):
        setting = await AttendanceSettingService.create_setting(db, _setting(org.branch.id))
        assert setting.late_threshold_minutes == 15
        assert setting.half_day_hours == 4
        assert setting.weekend_days == [5, 6]
        assert setting.branch.name == "Dhaka"

    async def test_one_setting_per_branch(self, db, org):
        await AttendanceSettingService.create_setting(db, _setting(org.branch.id))
        with pytest.raises(ConflictError) as exc_info:
            await AttendanceSettingService.create_setting(db, _setting(org.branch.id))
        assert "branch_id" in exc_info.value.errors

    async def test_unknown_branch(self, db):
        with pytest.raises(ValidationException) as exc_info:
            await AttendanceSettingService.create_setting(db, _setting(uuid.uuid4()))
        assert "branch_id" in exc_info.value.errors

    def test_end_before_start_rejected(self):
        with pytest.raises(PydanticValidationError):
            _setting(uuid.uuid4(), work_start_time=time(18, 0))

    def test_weekday_out_of_range_rejected(self):
        with pytest.raises(PydanticValidationError):
            _setting(uuid.uuid4(), weekend_days=[7])

    async def test_update_keeps_hours_ordered(self, db, org):
        setting = await AttendanceSettingService.create_setting(db, _setting(org.branch.id))
        with pytest.raises(ValidationException) as exc_info:
            await AttendanceSettingService.update_setting(
                db, setting.id, AttendanceSettingUpdate(work_end_time=time(8, 0)),
            )
        assert "work_end_time" in exc_info.value.errors

    async def test_move_to_branch_with_settings_refused(self, db, org):
        await AttendanceSettingService.create_setting(db, _setting(org.other_branch.id))
        setting = await AttendanceSettingService.create_setting(db, _setting(org.branch.id))
        with pytest.raises(ConflictError):
            await AttendanceSettingService.update_setting(
                db, setting.id, AttendanceSettingUpdate(branch_id=org.other_branch.id),
            )

    async def test_update_threshold(self, db, org):
        setting = await AttendanceSettingService.create_setting(db, _setting(org.branch.id))
        updated = await AttendanceSettingService.update_setting(
            db, setting.id, AttendanceSettingUpdate(late_threshold_minutes=10, weekend_days=[5]),
        )
        assert updated.late_threshold_minutes == 10
        assert updated.weekend_days == [5]
        assert updated.work_start_time == time(9, 0)


class TestAttendanceSettingsAPI:

    async def test_crud_round(self, client, db, org):
        _, headers = await login_as(db, ["attendance.admin"])
        resp = await client.post(
            "/api/v1/attendance/settings",
            json={
                "branch_id": str(org.branch.id),
                "work_start_time": "09:00",
                "work_end_time": "17:30",
                "late_threshold_minutes": 10,
                "weekend_days": [5, 6],
            },
            headers=headers,
        )
        assert resp.status_code == 201
        setting_id = resp.json()["data"]["id"]
        assert resp.json()["data"]["branch"]["id"] == str(org.branch.id)

        resp = await client.get("/api/v1/attendance/settings", headers=headers)
        assert resp.status_code == 200
        assert [s["id"] for s in resp.json()["data"]] == [setting_id]

        resp = await client.put(
            f"/api/v1/attendance/settings/{setting_id}",
            json={"half_day_hours": 5},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["half_day_hours"] == 5

        resp = await client.delete(f"/api/v1/attendance/settings/{setting_id}", headers=headers)
        assert resp.status_code == 200
        assert await db.scalar(
            select(AttendanceSetting.id).where(AttendanceSetting.id == uuid.UUID(setting_id))
        ) is None

    async def test_requires_attendance_admin(self, client, db, org):
        _, headers = await login_as(db, ["attendance.view", "attendance.create", "attendance.edit"])
        resp = await client.get("/api/v1/attendance/settings", headers=headers)
        assert resp.status_code == 403
        resp = await client.post(
            "/api/v1/attendance/settings",
            json={
                "branch_id": str(org.branch.id),
                "work_start_time": "09:00",
                "work_end_time": "17:00",
                "weekend_days": [5],
            },
            headers=headers,
        )
        assert resp.status_code == 403
